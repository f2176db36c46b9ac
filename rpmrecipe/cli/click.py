import locale
import logging
from functools import wraps
from shutil import SpecialFileError
from typing import Any, Optional

import click

from ..context import BuildContext, load_config
from ..exc import ConfigError, ParseError, StageExecutionError, UnresolvedConditionError
from ..recipe import Stage
from ..subcommands.build import do_build
from ..subcommands.query import do_query
from ..subcommands.resolve import do_resolve
from ..util import handle_expected_exceptions
from . import pager
from .base import collect_defines, setup_logging

log = logging.getLogger(__name__)

RECIPE_EXCEPTIONS = (
    ValueError,
    FileNotFoundError,
    SpecialFileError,
    ConfigError,
    ParseError,
    UnresolvedConditionError,
)


def _defines_callback(ctx: click.Context, param: click.Parameter, value: tuple[str, ...]):
    try:
        return collect_defines(value)
    except ValueError as exc:
        raise click.BadParameter(str(exc), ctx=ctx, param=param) from exc


def target_options(func):
    """Add the options selecting the build target of a subcommand."""

    @click.option(
        "--profile",
        "-p",
        envvar="RPMRECIPE_PROFILE",
        help="Build profile to resolve conditionals for (default: from configuration)",
    )
    @click.option(
        "--define",
        "-D",
        "defines",
        multiple=True,
        metavar="NAME=VALUE",
        callback=_defines_callback,
        help="Define or override a macro (repeatable)",
    )
    @click.option("--arch", help="Target architecture (default: from profile or this machine)")
    @click.option(
        "--allow-unmatched/--no-allow-unmatched",
        default=False,
        help="Skip conditionals without matching branch and %else instead of failing",
        show_default=True,
    )
    @wraps(func)
    def wrapper(*args, profile, defines, arch, allow_unmatched, **kwargs):
        obj = click.get_current_context().find_object(dict) or {}
        try:
            context = BuildContext.for_profile(
                profile, defines=defines, arch=arch, config=obj.get("config")
            )
        except ConfigError as exc:
            raise click.ClickException(str(exc)) from exc
        return func(*args, context=context, allow_unmatched=allow_unmatched, **kwargs)

    return wrapper


@click.group(
    name="rpmrecipe",
    epilog="Environment variables $RPMRECIPE_CONFIG and $RPMRECIPE_PROFILE select the"
    + " configuration file and the default build profile, $RPMRECIPE_LESS can specify pager"
    + " options (pager is currently only used by 'resolve').",
)
@click.option(
    "--pager/--no-pager", help="Start a pager automatically", default=True, show_default=True
)
@click.option("--quiet", "-q", "log_level", flag_value=logging.WARNING, help="Be less talkative")
@click.option(
    "--debug",
    "log_level",
    flag_value=logging.DEBUG,
    help="Enable debugging output",
)
@click.option(
    "--config",
    "config_path",
    type=click.Path(dir_okay=False),
    envvar="RPMRECIPE_CONFIG",
    help="YAML file with additional build profiles",
)
@click.pass_context
def cli(ctx: click.Context, pager: bool, log_level: Optional[int], config_path: Optional[str]):
    locale.setlocale(locale.LC_ALL, "")

    ctx.ensure_object(dict)
    ctx.obj["pager"] = pager
    ctx.obj["log_level"] = log_level

    setup_logging(log_level=log_level or logging.INFO)

    try:
        ctx.obj["config"] = load_config(config_path)
    except ConfigError as exc:
        raise click.ClickException(str(exc)) from exc


# Subcommands


@cli.command()
@click.option(
    "--field",
    "-f",
    "fields",
    multiple=True,
    help="Metadata field to print, or 'packages' (repeatable, default: name, epoch, version,"
    + " release)",
)
@click.argument("spec_or_path", type=click.Path(), default=".")
@target_options
@handle_expected_exceptions
def query(
    context: BuildContext, allow_unmatched: bool, fields: tuple[str, ...], spec_or_path: str
) -> None:
    """Print metadata of a recipe resolved for a build profile"""
    try:
        result = do_query(spec_or_path, context, fields=fields, allow_unmatched=allow_unmatched)
    except RECIPE_EXCEPTIONS as exc:
        raise click.ClickException(str(exc)) from exc

    for field, value in result.items():
        print(f"{field}: {value if value is not None else '(none)'}")


@cli.command()
@click.argument("spec_or_path", type=click.Path(), default=".")
@target_options
@click.pass_obj
@handle_expected_exceptions
def resolve(
    obj: dict[str, Any], context: BuildContext, allow_unmatched: bool, spec_or_path: str
) -> None:
    """Print the effective recipe for a build profile"""
    try:
        text = do_resolve(spec_or_path, context, allow_unmatched=allow_unmatched)
    except RECIPE_EXCEPTIONS as exc:
        raise click.ClickException(str(exc)) from exc
    pager.page(text, enabled=obj["pager"])


@cli.command()
@click.option(
    "--topdir",
    type=click.Path(file_okay=False),
    help="Top directory for SOURCES, BUILD, BUILDROOT and MANIFESTS"
    + " (default: directory of the spec file)",
)
@click.option(
    "--until",
    type=click.Choice([stage.value for stage in Stage]),
    help="Stop after this stage",
)
@click.option(
    "--dry-run/--no-dry-run",
    "-n/ ",
    default=False,
    help="Only show the commands which would be run",
    show_default=True,
)
@click.argument("spec_or_path", type=click.Path(), default=".")
@target_options
@handle_expected_exceptions
def build(
    context: BuildContext,
    allow_unmatched: bool,
    topdir: Optional[str],
    until: Optional[str],
    dry_run: bool,
    spec_or_path: str,
) -> None:
    """Run the lifecycle stages of a recipe and write package manifests"""
    try:
        manifests = do_build(
            spec_or_path,
            context,
            topdir=topdir,
            until=Stage(until) if until else None,
            dry_run=dry_run,
            allow_unmatched=allow_unmatched,
        )
    except StageExecutionError as exc:
        error = click.ClickException(str(exc))
        if exc.returncode and exc.returncode < 0:
            # killed by a signal: 128 + signal number, as in the shell
            error.exit_code = 128 - exc.returncode
        else:
            error.exit_code = exc.returncode or 1
        raise error from exc
    except RECIPE_EXCEPTIONS as exc:
        raise click.ClickException(str(exc)) from exc

    for manifest in manifests:
        log.info("Manifest: %s", manifest)
