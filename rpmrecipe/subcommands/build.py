import logging
from pathlib import Path
from typing import Optional, Union

from ..context import BuildContext
from ..parser import find_recipe, parse_recipe_file
from ..recipe import Stage
from ..resolver import resolve
from ..runner import BuildLayout, StageRunner

log = logging.getLogger(__name__)


def do_build(
    spec_or_path: Union[str, Path],
    context: BuildContext,
    *,
    topdir: Optional[Union[str, Path]] = None,
    until: Optional[Stage] = None,
    dry_run: bool = False,
    allow_unmatched: bool = False,
) -> list[Path]:
    """Build a package from a recipe.

    :param spec_or_path: The spec file or directory it is located in.
    :param context: The build context to resolve conditionals for.
    :param topdir: The top directory for sources, build and build root,
        defaults to the directory containing the spec file.
    :param until: The last stage to run.
    :param dry_run: Only log the commands which would be run.
    :param allow_unmatched: Whether conditionals which don’t match at all
        are skipped instead of failing.
    :return: the paths of the written manifests
    """
    specfile = find_recipe(spec_or_path)
    resolved = resolve(parse_recipe_file(specfile), context, allow_unmatched=allow_unmatched)

    layout = BuildLayout(topdir or specfile.parent)
    log.debug("Building %s for profile %s in %s", specfile.name, context.profile, layout.topdir)

    return StageRunner(resolved, layout, dry_run=dry_run).run(until=until)
