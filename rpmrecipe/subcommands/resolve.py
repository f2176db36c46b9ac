from pathlib import Path
from typing import Union

from ..context import BuildContext
from ..parser import parse_recipe_file
from ..resolver import resolve
from ..serialize import format_resolved


def do_resolve(
    spec_or_path: Union[str, Path], context: BuildContext, *, allow_unmatched: bool = False
) -> str:
    """Resolve the conditionals of a recipe and format the result.

    :param spec_or_path: The spec file or directory it is located in.
    :param context: The build context to resolve conditionals for.
    :param allow_unmatched: Whether conditionals which don’t match at all
        are skipped instead of failing.
    :return: the effective recipe text
    """
    recipe = parse_recipe_file(spec_or_path)
    return format_resolved(resolve(recipe, context, allow_unmatched=allow_unmatched))
