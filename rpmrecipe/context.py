"""
Build contexts: the profile macros a recipe is resolved against
"""

import logging
import os
import platform
from collections.abc import Mapping
from enum import Enum
from pathlib import Path
from types import MappingProxyType
from typing import Any, Optional, Union

import yaml

from .exc import ConfigError

log = logging.getLogger(__name__)

CONFIG_ENV_VAR = "RPMRECIPE_CONFIG"
PROFILE_ENV_VAR = "RPMRECIPE_PROFILE"


class DistroFamily(str, Enum):
    suse = "suse"
    fedora = "fedora"
    other = "other"


PYTHON3_VERSION = "3.11"

COMMON_MACROS = {
    "_prefix": "/usr",
    "_exec_prefix": "%{_prefix}",
    "_bindir": "%{_exec_prefix}/bin",
    "_sbindir": "%{_exec_prefix}/sbin",
    "_libdir": "%{_prefix}/lib64",
    "_datadir": "%{_prefix}/share",
    "_docdir": "%{_datadir}/doc",
    "_licensedir": "%{_datadir}/licenses",
    "_mandir": "%{_datadir}/man",
    "_sysconfdir": "/etc",
    "__python3": "/usr/bin/python3",
    "python3_version": PYTHON3_VERSION,
    "python3_version_nodots": PYTHON3_VERSION.replace(".", ""),
    "python3_sitelib": "%{_prefix}/lib/python%{python3_version}/site-packages",
    "python3_sitearch": "%{_libdir}/python%{python3_version}/site-packages",
    "py3_build": "%{__python3} setup.py build %*",
    "py3_install": "%{__python3} setup.py install --skip-build --root %{buildroot} %*",
}

PROFILE_MACROS = {
    DistroFamily.suse: {
        "suse_version": "1600",
        "dist": ".suse",
    },
    DistroFamily.fedora: {
        "fedora": "40",
        "dist": ".fc40",
    },
    DistroFamily.other: {
        "dist": "",
    },
}


def _stringify(macros: Mapping[str, Any], origin: str) -> dict[str, str]:
    if not isinstance(macros, Mapping):
        raise ConfigError(f"Macros of {origin} must be a mapping")
    return {str(name): "" if value is None else str(value) for name, value in macros.items()}


class Config:
    """Configuration, optionally read from a YAML file.

    Example::

        default_profile: leap
        profiles:
          leap:
            inherit: suse
            arch: aarch64
            macros:
              suse_version: 1500
    """

    def __init__(self, data: Optional[Mapping[str, Any]] = None, path: Optional[Path] = None):
        data = data or {}
        if not isinstance(data, Mapping):
            raise ConfigError(f"Configuration in {path} must be a mapping")
        self.path = path
        self.default_profile = os.environ.get(PROFILE_ENV_VAR) or data.get(
            "default_profile", DistroFamily.other.value
        )
        self.profiles: dict[str, Mapping[str, Any]] = dict(data.get("profiles") or {})

    @property
    def profile_names(self) -> list[str]:
        return sorted({family.value for family in DistroFamily} | set(self.profiles))

    def profile_settings(self, name: str, _seen: tuple[str, ...] = ()) -> tuple[dict, str]:
        """Compute the macros and architecture of a profile.

        :return: tuple of macros and arch (empty if unset)
        """
        if name in _seen:
            raise ConfigError(f"Profile {name} inherits from itself")

        settings = self.profiles.get(name)
        builtin = name in DistroFamily.__members__

        if settings is None and not builtin:
            raise ConfigError(
                f"Unknown profile: {name}",
                detail="Known profiles: " + ", ".join(self.profile_names),
            )

        settings = settings or {}
        if not isinstance(settings, Mapping):
            raise ConfigError(f"Profile {name} must be a mapping")

        parent = settings.get("inherit")
        if parent:
            macros, arch = self.profile_settings(str(parent), _seen + (name,))
        else:
            macros, arch = dict(COMMON_MACROS), ""
            if builtin:
                macros.update(PROFILE_MACROS[DistroFamily(name)])
            else:
                macros.update(PROFILE_MACROS[DistroFamily.other])

        macros.update(_stringify(settings.get("macros") or {}, f"profile {name}"))
        return macros, str(settings.get("arch") or arch)


def load_config(path: Optional[Union[str, Path]] = None) -> Config:
    """Load the configuration file.

    Without an explicit path, $RPMRECIPE_CONFIG is consulted. No
    configuration file at all yields the built-in defaults.
    """
    if path is None:
        path = os.environ.get(CONFIG_ENV_VAR)
    if not path:
        return Config()

    path = Path(path)
    log.debug("Loading configuration from %s", path)
    try:
        with path.open("r", encoding="utf-8") as fp:
            data = yaml.safe_load(fp)
    except OSError as exc:
        raise ConfigError(f"Can’t read configuration file {path}", detail=str(exc)) from exc
    except yaml.YAMLError as exc:
        raise ConfigError(f"Can’t parse configuration file {path}", detail=str(exc)) from exc

    return Config(data, path=path)


class BuildContext:
    """The build target a recipe is resolved for."""

    def __init__(self, profile: str, macros: Mapping[str, str], arch: Optional[str] = None):
        self.profile = profile
        self.arch = arch or platform.machine() or "noarch"
        macros = dict(macros)
        macros.setdefault("_arch", self.arch)
        macros.setdefault("_target_cpu", self.arch)
        self._macros = MappingProxyType(macros)

    def __repr__(self) -> str:
        return f"<BuildContext {self.profile} ({self.arch})>"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, BuildContext):
            return NotImplemented
        return (self.profile, self.arch, self._macros) == (other.profile, other.arch, other._macros)

    @property
    def macros(self) -> Mapping[str, str]:
        return self._macros

    @classmethod
    def for_profile(
        cls,
        profile: Optional[Union[str, DistroFamily]] = None,
        *,
        defines: Optional[Mapping[str, str]] = None,
        arch: Optional[str] = None,
        config: Optional[Config] = None,
    ) -> "BuildContext":
        """Create a build context from a named profile.

        :param profile: Name of the profile, defaults to the configured one
        :param defines: Macros overriding the profile
        :param arch: Target architecture, overriding the profile
        :param config: Configuration with additional profiles
        """
        config = config or Config()
        if isinstance(profile, DistroFamily):
            profile = profile.value
        profile = profile or config.default_profile

        macros, profile_arch = config.profile_settings(profile)
        if defines:
            macros.update(_stringify(defines, "defines"))
        return cls(profile, macros, arch=arch or profile_arch or None)
