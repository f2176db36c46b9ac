"""
Run the lifecycle stages of a resolved recipe
"""

import getopt
import logging
import os
import re
import shutil
import subprocess
from collections.abc import Iterable, Mapping
from pathlib import Path
from typing import Optional, Union

from .exc import StageExecutionError
from .macros import MacroExpander
from .manifest import write_manifests
from .recipe import ResolvedRecipe, Stage

log = logging.getLogger(__name__)

SHELL = "/bin/sh"

setup_re = re.compile(r"^\s*%(?:\{(?:auto)?setup\}|(?:auto)?setup)(?:\s+(?P<args>.*))?$")


def logical_lines(lines: Iterable[str]) -> list[str]:
    """Join backslash continuations, drop blank lines and shell comments."""
    commands = []
    pending = []
    for line in lines:
        if line.rstrip().endswith("\\"):
            pending.append(line.rstrip()[:-1])
            continue
        pending.append(line)
        command = " ".join(pending).strip()
        pending = []
        if command and not command.startswith("#"):
            commands.append(command)
    if pending:
        command = " ".join(pending).strip()
        if command:
            commands.append(command)
    return commands


class BuildLayout:
    """Directories used while building.

    Defaults follow rpmbuild: SOURCES, BUILD and BUILDROOT below a top
    directory, manifests end up in MANIFESTS.
    """

    def __init__(
        self,
        topdir: Union[str, Path],
        *,
        sourcedir: Optional[Union[str, Path]] = None,
        builddir: Optional[Union[str, Path]] = None,
        buildroot: Optional[Union[str, Path]] = None,
        manifestdir: Optional[Union[str, Path]] = None,
    ):
        self.topdir = Path(topdir).absolute()
        self.sourcedir = Path(sourcedir or self.topdir / "SOURCES").absolute()
        self.builddir = Path(builddir or self.topdir / "BUILD").absolute()
        self.buildroot = Path(buildroot or self.topdir / "BUILDROOT").absolute()
        self.manifestdir = Path(manifestdir or self.topdir / "MANIFESTS").absolute()

    def create(self) -> None:
        for path in (self.sourcedir, self.builddir, self.buildroot, self.manifestdir):
            path.mkdir(parents=True, exist_ok=True)

    def macros(self) -> dict[str, str]:
        return {
            "_topdir": str(self.topdir),
            "_sourcedir": str(self.sourcedir),
            "_builddir": str(self.builddir),
            "buildroot": str(self.buildroot),
        }


class StageRunner:
    """Execute the stages of a resolved recipe in order.

    The commands of a stage run as one shell script with errexit set, in the
    build sub-directory set up by %setup/%autosetup (or the build directory
    before that). The first failing command stops the run.
    """

    def __init__(
        self,
        resolved: ResolvedRecipe,
        layout: BuildLayout,
        *,
        dry_run: bool = False,
        env: Optional[Mapping[str, str]] = None,
    ):
        self.resolved = resolved
        self.layout = layout
        self.dry_run = dry_run
        self.expander = MacroExpander({**resolved.macros, **layout.macros()})
        self.buildsubdir: Optional[Path] = None

        metadata = resolved.metadata
        self.env = dict(os.environ)
        self.env.update(
            {
                "RPM_SOURCE_DIR": str(layout.sourcedir),
                "RPM_BUILD_DIR": str(layout.builddir),
                "RPM_BUILD_ROOT": str(layout.buildroot),
                "RPM_PACKAGE_NAME": metadata.get("Name", ""),
                "RPM_PACKAGE_VERSION": metadata.get("Version", ""),
                "RPM_PACKAGE_RELEASE": metadata.get("Release", ""),
                "RPM_ARCH": self.expander.expand("%{?_arch}"),
            }
        )
        if env:
            self.env.update(env)

    @property
    def cwd(self) -> Path:
        return self.buildsubdir or self.layout.builddir

    def run(self, until: Optional[Stage] = None) -> list[Path]:
        """Run all stages, optionally stopping after *until*.

        :return: the manifests written by the package stage
        """
        if not self.dry_run:
            self.layout.create()

        manifests = []
        for stage in Stage:
            result = self.run_stage(stage)
            if stage is Stage.package:
                manifests = result
            if stage is until:
                log.info("Stopping after %%%s", stage.value)
                break
        return manifests

    def run_stage(self, stage: Stage) -> Optional[list[Path]]:
        log.info("Executing(%%%s)", stage.value)

        if stage is Stage.package:
            return write_manifests(
                self.resolved, self.layout, buildsubdir=self.cwd, dry_run=self.dry_run
            )

        if stage is Stage.install and not self.dry_run:
            shutil.rmtree(self.layout.buildroot, ignore_errors=True)
            self.layout.buildroot.mkdir(parents=True)

        script = []
        for command in logical_lines(self.resolved.stages.get(stage, ())):
            if match := setup_re.match(command):
                # commands before %setup run in the old working directory
                if script:
                    self.run_command(stage, "\n".join(script))
                    script = []
                self.setup(stage, self.expander.expand(match.group("args") or ""))
            else:
                script.append(self.expander.expand_command(command))
        if script:
            self.run_command(stage, "\n".join(script))
        return None

    def run_command(self, stage: Stage, command: str, cwd: Optional[Path] = None) -> None:
        cwd = cwd or self.cwd
        for line in command.splitlines():
            log.info("+ %s", line)
        if self.dry_run:
            return

        completed = subprocess.run([SHELL, "-e", "-c", command], cwd=cwd, env=self.env)

        if completed.returncode:
            if completed.returncode < 0:
                status = f"killed by signal {-completed.returncode}"
            else:
                status = str(completed.returncode)
            raise StageExecutionError(
                f"Bad exit status from %{stage.value} stage ({status})",
                stage=stage.value,
                command=command,
                returncode=completed.returncode,
                code="command-failed",
                detail=command,
            )

    def setup(self, stage: Stage, args: str) -> None:
        """Create the build sub-directory and unpack sources into it.

        Supported options: -n NAME, -c (create the directory before
        unpacking), -T (don't unpack Source0), -D (don't delete the
        directory first), -a N/-b N (unpack SourceN after/before changing
        into the directory) and -q, -p, -S, -N (ignored).
        """
        try:
            opts, rest = getopt.getopt(args.split(), "a:b:cDn:p:qS:NT")
        except getopt.GetoptError as exc:
            raise StageExecutionError(
                f"Bad %setup options: {args}",
                stage=stage.value,
                command=f"%setup {args}",
                returncode=1,
                code="bad-setup-options",
                detail=str(exc),
            ) from exc
        if rest:
            log.warning("Ignoring extra %%setup arguments: %s", " ".join(rest))

        options = {}
        after, before = [], []
        for opt, value in opts:
            if opt == "-a":
                after.append(value)
            elif opt == "-b":
                before.append(value)
            else:
                options[opt] = value

        name = options.get("-n") or self.expander.expand("%{name}-%{version}")
        subdir = self.layout.builddir / name
        log.info("+ %%setup %s (in %s)", args, subdir)

        if not self.dry_run:
            if "-D" not in options:
                shutil.rmtree(subdir, ignore_errors=True)
            self.layout.builddir.mkdir(parents=True, exist_ok=True)
            if "-c" in options:
                subdir.mkdir(parents=True, exist_ok=True)

        unpack_dir = subdir if "-c" in options else self.layout.builddir
        for number in before:
            self._unpack(stage, number, self.layout.builddir)
        if "-T" not in options:
            self._unpack(stage, "0", unpack_dir)

        if not self.dry_run and not subdir.is_dir():
            raise StageExecutionError(
                f"Build directory {subdir} wasn’t created by unpacking the sources",
                stage=stage.value,
                command=f"%setup {args}",
                returncode=1,
                code="missing-buildsubdir",
            )

        self.buildsubdir = subdir
        self.expander.define("buildsubdir", name)

        for number in after:
            self._unpack(stage, number, subdir)

    def _unpack(self, stage: Stage, number: str, cwd: Path) -> None:
        source = self.expander.expand(f"%{{S:{number}}}")
        self.run_command(stage, f"tar -xof '{source}'", cwd=cwd)
