import shutil
from pathlib import Path

__HERE__ = Path(__file__).parent
RECIPES_DIR = __HERE__ / "test-data" / "recipes"
CONFIGS_DIR = __HERE__ / "test-data" / "configs"

RECIPE_TEMPLATE = """Name: foo
Version: 1.0
Release: 1
Summary: Foo
License: MIT

%description
Foo

{body}
"""


def read_recipe(name: str) -> str:
    return (RECIPES_DIR / f"{name}.spec").read_text()


def copy_recipe(name: str, target_dir: Path) -> Path:
    """Copy a test recipe into a directory named like it."""
    pkgdir = target_dir / name
    pkgdir.mkdir(parents=True, exist_ok=True)
    specfile = pkgdir / f"{name}.spec"
    shutil.copyfile(RECIPES_DIR / f"{name}.spec", specfile)
    return specfile
