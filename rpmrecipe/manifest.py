"""
Collect the files of each sub-package and write its manifest
"""

import logging
from pathlib import Path
from typing import Any, Optional

import yaml

from .exc import StageExecutionError
from .recipe import ResolvedPackage, ResolvedRecipe, Stage

log = logging.getLogger(__name__)

GLOB_CHARS = set("*?[")


def _glob(root: Path, pattern: str) -> list[Path]:
    relative = pattern.lstrip("/")
    if not relative:
        return [root] if root.exists() else []
    if GLOB_CHARS & set(relative):
        return sorted(root.glob(relative))
    path = root / relative
    return [path] if path.exists() or path.is_symlink() else []


def collect_files(package: ResolvedPackage, buildroot: Path, buildsubdir: Path) -> list[str]:
    """Match the file globs of a package.

    Absolute globs are matched below the build root, relative ones (as used
    with %doc and %license) below the build sub-directory.

    :return: the sorted matching paths, absolute paths as installed
    """
    matched = set()
    for entry in sorted(package.files):
        if "%ghost" in (entry.directive or "").split():
            matched.add(entry.path)
            continue

        if entry.path.startswith("/"):
            root = buildroot
        else:
            root = buildsubdir
        paths = _glob(root, entry.path)

        if not paths:
            raise StageExecutionError(
                f"File not found for {package.name}: {entry.path}",
                stage=Stage.package.value,
                returncode=1,
                code="file-not-found",
                detail=f"Looked below {root}",
            )

        for path in paths:
            relative = path.relative_to(root).as_posix()
            matched.add("/" + relative if root == buildroot else relative)

    return sorted(matched)


def package_manifest(
    resolved: ResolvedRecipe, package: ResolvedPackage, files: Optional[list[str]]
) -> dict[str, Any]:
    metadata = resolved.metadata
    manifest = {
        "name": package.name,
        "epoch": metadata.get("Epoch"),
        "version": metadata.get("Version"),
        "release": metadata.get("Release"),
        "summary": package.summary,
        "license": package.tags.get("License", metadata.get("License")),
        "url": package.tags.get("URL", metadata.get("URL")),
        "profile": resolved.profile,
        "requires": [str(dependency) for dependency in package.requires],
        "provides": [str(dependency) for dependency in package.provides],
        "file_globs": [str(entry) for entry in sorted(package.files)],
    }
    if files is not None:
        manifest["files"] = files
    return manifest


def write_manifests(
    resolved: ResolvedRecipe, layout, *, buildsubdir: Path, dry_run: bool = False
) -> list[Path]:
    """Write a YAML manifest for each package with a %files section.

    :return: the paths of the written manifests
    """
    written = []
    for package in resolved.packages:
        if not package.has_files:
            log.debug("No %%files section for %s, skipping", package.name)
            continue

        target = layout.manifestdir / f"{package.name}.yaml"
        if dry_run:
            log.info("Would write manifest %s", target)
            continue

        files = collect_files(package, layout.buildroot, buildsubdir)
        layout.manifestdir.mkdir(parents=True, exist_ok=True)
        with target.open("w", encoding="utf-8") as fp:
            yaml.safe_dump(
                package_manifest(resolved, package, files),
                fp,
                sort_keys=False,
                default_flow_style=False,
            )
        log.info("Wrote: %s", target)
        written.append(target)

    return written
