"""
Resolve the conditional blocks of a recipe for one build context
"""

import logging
from types import MappingProxyType
from typing import Optional

from .conditions import evaluate
from .context import BuildContext
from .exc import AmbiguousConditionError, UnresolvedConditionError
from .macros import MacroExpander
from .recipe import (
    BranchRef,
    ConditionalFamily,
    Dependency,
    FileEntry,
    MacroDefinition,
    Recipe,
    ResolvedPackage,
    ResolvedRecipe,
    Scope,
    Stage,
    is_dependency_tag,
)

log = logging.getLogger(__name__)

# metadata tags which are available as macros, e.g. %{name}
TAG_MACROS = ("Name", "Epoch", "Version", "Release", "Summary", "License", "URL")


class Resolver:
    """Select one branch per guard family and merge the result.

    Families, macro definitions and main package tags are processed in
    document order, so guards can refer to anything defined before them.
    """

    def __init__(self, recipe: Recipe, context: BuildContext, *, allow_unmatched: bool = False):
        self.recipe = recipe
        self.context = context
        self.allow_unmatched = allow_unmatched
        self.expander = MacroExpander(context.macros)
        self.selected: set[BranchRef] = set()
        self.definitions: list[MacroDefinition] = []
        # nesting depth of the tag each tag macro was last defined from
        self._tag_depth: dict[str, int] = {}

    def is_active(self, scope: Scope) -> bool:
        return all(ref in self.selected for ref in scope)

    def select_branch(self, family: ConditionalFamily) -> Optional[int]:
        """Evaluate the guards of a family.

        Within an %if/%elif/%else chain, the first match wins. Joined
        %if blocks must not match more than once.
        """
        matches = []
        chain_matched = False
        for index, branch in enumerate(family.branches):
            if branch.kind == "if":
                chain_matched = False
            if chain_matched:
                continue
            if branch.is_default or evaluate(branch.guard, self.expander):
                matches.append(index)
                chain_matched = True

        where = f"{self.recipe.filename or '<string>'}:{family.lineno}"

        if len(matches) > 1:
            guards = ", ".join(str(family.branches[index].guard) for index in matches)
            raise AmbiguousConditionError(
                f"More than one branch of the conditional at {where} matches"
                + f" profile {self.context.profile}",
                code="ambiguous-condition",
                detail=guards,
            )

        if not matches:
            if self.allow_unmatched:
                log.debug("No branch of the conditional at %s matches, skipping", where)
                return None
            raise UnresolvedConditionError(
                f"No branch of the conditional at {where} matches profile"
                + f" {self.context.profile} and it has no %else",
                code="unresolved-condition",
                detail=", ".join(str(branch.guard) for branch in family.branches),
            )

        return matches[0]

    def _walk(self) -> None:
        events = []
        for family in self.recipe.families.values():
            events.append((family.lineno, 0, family))
        for definition in self.recipe.macro_definitions:
            events.append((definition.lineno, 1, definition))
        for tag in self.recipe.tags:
            if tag.package is None and (
                tag.name in TAG_MACROS or tag.name.startswith(("Source", "Patch"))
            ):
                events.append((tag.lineno, 1, tag))
        events.sort(key=lambda event: (event[0], event[1]))

        for _, kind, item in events:
            if kind == 0:
                if self.is_active(item.scope):
                    index = self.select_branch(item)
                    if index is not None:
                        self.selected.add(BranchRef(item.family_id, index))
                        log.debug(
                            "Selected branch %d of conditional at line %d", index, item.lineno
                        )
            elif self.is_active(item.scope):
                if isinstance(item, MacroDefinition):
                    body = self.expander.expand(item.body) if item.is_global else item.body
                    self.expander.define(item.name, body)
                    self.definitions.append(item._replace(body=body))
                else:
                    macro = item.name.lower()
                    if item.name.startswith(("Source", "Patch")):
                        macro = item.name.upper()
                    # same precedence as _active_tags(): deeper nesting wins
                    depth = len(item.scope)
                    if depth < self._tag_depth.get(macro, 0):
                        log.debug(
                            "line %d: %s is overridden by a conditional tag", item.lineno, item.name
                        )
                        continue
                    self._tag_depth[macro] = depth
                    self.expander.define(macro, self.expander.expand(item.value))

    def _active_tags(self, package: Optional[str]):
        tags = [
            tag for tag in self.recipe.tags if tag.package == package and self.is_active(tag.scope)
        ]
        # conditional overrides win over base definitions
        return sorted(tags, key=lambda tag: (len(tag.scope), tag.lineno))

    def _resolve_package(self, raw_name: Optional[str], metadata) -> ResolvedPackage:
        expand = self.expander.expand
        is_main = raw_name is None
        tags = {}
        dependencies: dict[str, list[Dependency]] = {}
        for tag in self._active_tags(raw_name):
            if is_dependency_tag(tag.name):
                dependencies.setdefault(tag.name, []).extend(
                    dependency.expand(self.expander)
                    for dependency in Dependency.parse_list(tag.value)
                )
            else:
                tags[tag.name] = expand(tag.value)

        if is_main:
            name = metadata.get("Name", "")
            tags = dict(metadata)
        else:
            name = expand(raw_name)

        description_lines = [
            line.text
            for line in self.recipe.descriptions.get(raw_name, ())
            if self.is_active(line.scope)
        ]
        description = expand("\n".join(description_lines)).strip("\n")

        files = frozenset(
            FileEntry(expand(item.entry.path), item.entry.directive)
            for item in self.recipe.files.get(raw_name, ())
            if self.is_active(item.scope)
        )
        has_files = any(
            section.kind == "files"
            and section.package == raw_name
            and self.is_active(section.scope)
            for section in self.recipe.sections
        )

        return ResolvedPackage(
            name=name,
            summary=tags.get("Summary", metadata.get("Summary", "")),
            tags=MappingProxyType(tags),
            requires=tuple(
                dependency
                for tag, deps in dependencies.items()
                if tag.partition("(")[0] == "Requires"
                for dependency in deps
            ),
            provides=tuple(dependencies.get("Provides", ())),
            dependencies=MappingProxyType(
                {tag: tuple(deps) for tag, deps in dependencies.items() if tag != "BuildRequires"}
            ),
            description=description,
            files=files,
            has_files=has_files,
            is_main=is_main,
        )

    def _check_packages(self, declared: list[str]) -> None:
        for section in self.recipe.sections:
            if (
                section.package is not None
                and section.kind != "package"
                and self.is_active(section.scope)
                and section.package not in declared
            ):
                raise UnresolvedConditionError(
                    f"%{section.kind} at line {section.lineno} refers to sub-package"
                    + f" {section.package} which isn't declared for profile"
                    + f" {self.context.profile}",
                    code="undeclared-package",
                )

    def run(self) -> ResolvedRecipe:
        self._walk()
        expand = self.expander.expand

        metadata = {}
        build_requires = []
        for tag in self._active_tags(None):
            if tag.name == "BuildRequires":
                build_requires.extend(
                    dependency.expand(self.expander)
                    for dependency in Dependency.parse_list(tag.value)
                )
            elif not is_dependency_tag(tag.name):
                metadata[tag.name] = expand(tag.value)

        declared = []
        for section in self.recipe.sections:
            if (
                section.kind == "package"
                and self.is_active(section.scope)
                and section.package not in declared
            ):
                declared.append(section.package)
        self._check_packages(declared)

        packages = [self._resolve_package(None, metadata)]
        packages.extend(self._resolve_package(raw_name, metadata) for raw_name in declared)

        stages = {
            stage: tuple(line.text for line in lines if self.is_active(line.scope))
            for stage, lines in self.recipe.stages.items()
        }
        stages[Stage.package] = ()

        changelog = "\n".join(
            line.text for line in self.recipe.changelog if self.is_active(line.scope)
        ).strip("\n")

        return ResolvedRecipe(
            profile=self.context.profile,
            metadata=MappingProxyType(metadata),
            macros=MappingProxyType(dict(self.expander.macros)),
            build_requires=tuple(build_requires),
            stages=MappingProxyType(stages),
            packages=tuple(packages),
            selected=tuple(sorted(self.selected)),
            changelog=changelog,
            definitions=tuple(self.definitions),
        )


def resolve(
    recipe: Recipe, context: BuildContext, *, allow_unmatched: bool = False
) -> ResolvedRecipe:
    """Resolve a recipe for a build context.

    :param recipe: The parsed recipe
    :param context: The build context, i.e. profile macros and architecture
    :param allow_unmatched: Whether conditionals without a matching branch
        and without %else are skipped instead of failing
    :return: the resolved recipe
    """
    return Resolver(recipe, context, allow_unmatched=allow_unmatched).run()
