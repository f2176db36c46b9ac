from pathlib import Path
from typing import Optional, Sequence, Union

from ..context import BuildContext
from ..parser import parse_recipe_file
from ..resolver import resolve

DEFAULT_FIELDS = ("Name", "Epoch", "Version", "Release")


def do_query(
    spec_or_path: Union[str, Path],
    context: BuildContext,
    *,
    fields: Optional[Sequence[str]] = None,
    allow_unmatched: bool = False,
) -> dict[str, Optional[str]]:
    """Query metadata fields of a recipe resolved for a build context.

    Field names are matched case-insensitively. Besides metadata tags,
    ``packages`` yields the names of all packages with a %files section.

    :param spec_or_path: The spec file or directory it is located in.
    :param context: The build context to resolve conditionals for.
    :param fields: The fields to query, by default name, epoch, version
        and release.
    :param allow_unmatched: Whether conditionals which don’t match at all
        are skipped instead of failing.
    :return: a mapping of the requested fields to their values, None if
        unset
    """
    resolved = resolve(parse_recipe_file(spec_or_path), context, allow_unmatched=allow_unmatched)
    by_lower = {tag.lower(): value for tag, value in resolved.metadata.items()}

    result = {}
    for field in fields or DEFAULT_FIELDS:
        if field.lower() == "packages":
            result[field] = " ".join(
                package.name for package in resolved.packages if package.has_files
            )
        else:
            result[field] = by_lower.get(field.lower())
    return result
