import locale as locale_mod
import os
from pathlib import Path
from unittest import mock

import pytest

from rpmrecipe.context import CONFIG_ENV_VAR, PROFILE_ENV_VAR

from .common import copy_recipe, read_recipe


@pytest.fixture(autouse=True)
def clean_environment():
    """Ensure tests don’t pick up configuration from the environment."""
    with mock.patch.dict(os.environ):
        os.environ.pop(CONFIG_ENV_VAR, None)
        os.environ.pop(PROFILE_ENV_VAR, None)
        yield


@pytest.fixture(autouse=True)
def locale():
    """Ensure consistent locale and that modifications stay isolated."""
    saved_locale_settings = {
        category: locale_mod.setlocale(getattr(locale_mod, category))
        for category in dir(locale_mod)
        if category.startswith("LC_") and category != "LC_ALL"
    }

    locale_mod.setlocale(locale_mod.LC_ALL, "C.UTF-8")

    yield locale_mod

    for category, locale_settings in saved_locale_settings.items():
        locale_mod.setlocale(getattr(locale_mod, category), locale_settings)


@pytest.fixture
def recipe_name(request) -> str:
    """
    This fixture exists to be substituted into the *specfile* fixture
    indirectly, or else provide a default of "foo".
    """
    return getattr(request, "param", "foo")


@pytest.fixture
def recipe_text(recipe_name) -> str:
    return read_recipe(recipe_name)


@pytest.fixture
def specfile(tmp_path, recipe_name) -> Path:
    """Copy the recipe named by the *recipe_name* fixture into a package directory."""
    yield copy_recipe(recipe_name, tmp_path)


@pytest.fixture
def topdir(tmp_path) -> Path:
    topdir = tmp_path / "rpmbuild"
    topdir.mkdir()
    yield topdir
