from .context import BuildContext, DistroFamily, load_config
from .exc import (
    AmbiguousConditionError,
    ParseError,
    RpmrecipeException,
    StageExecutionError,
    UnresolvedConditionError,
)
from .parser import parse_recipe, parse_recipe_file
from .recipe import Recipe, ResolvedRecipe, Stage
from .resolver import resolve
from .runner import BuildLayout, StageRunner
from .version import __version__
