"""
Parse recipe text into a Recipe
"""

import logging
import re
import shlex
from pathlib import Path
from shutil import SpecialFileError
from typing import NamedTuple, Optional, Union

from .conditions import is_negation, parse_arch_test, parse_expression
from .exc import ParseError
from .recipe import (
    BranchRef,
    ConditionalFamily,
    FileItem,
    Line,
    MacroDefinition,
    Recipe,
    Scope,
    Section,
    Stage,
    Tag,
    canonical_tag,
    is_dependency_tag,
    parse_files_line,
    subpackage_name,
)

log = logging.getLogger(__name__)

section_re = re.compile(
    r"^%(?P<section>package|description|prep|build|install|check|files|changelog)"
    r"(?:\s+(?P<args>.*?))?\s*$"
)
conditional_re = re.compile(
    r"^%(?P<keyword>ifnarch|ifarch|if|elif|else|endif)(?:\s+(?P<args>.*?))?\s*$"
)
define_re = re.compile(
    r"^%(?P<kind>global|define)\s+(?P<name>[A-Za-z_][A-Za-z0-9_]*)(?:\([^)]*\))?"
    r"(?:\s+(?P<body>.*))?$",
    re.DOTALL,
)
tag_re = re.compile(r"^(?P<tag>[A-Za-z][A-Za-z0-9]*(?:\([^)]*\))?)\s*:\s*(?P<value>.*?)\s*$")

STAGE_SECTIONS = {stage.value: stage for stage in Stage if stage is not Stage.package}


class _OpenBranch(NamedTuple):
    family: ConditionalFamily
    ref: BranchRef
    lineno: int


class RecipeParser:
    """Line-oriented parser for recipe text.

    Conditional blocks don't change which section lines go into, every item
    just records the branches it is nested in.
    """

    def __init__(self, filename: Optional[str] = None):
        self.recipe = Recipe(filename=filename)
        self.section = "preamble"
        self.package: Optional[str] = None
        self.open_branches: list[_OpenBranch] = []
        # family just closed per nesting depth, candidates for joining complementary %if blocks
        self.closed_family: dict[int, ConditionalFamily] = {}
        self._seen_tags: set[tuple[str, Optional[str], Scope]] = set()
        self._declared: dict[Optional[str], int] = {None: 0}

    @property
    def scope(self) -> Scope:
        return tuple(open_branch.ref for open_branch in self.open_branches)

    def parse(self, text: str) -> Recipe:
        lines = text.splitlines()
        lineno = 0
        while lineno < len(lines):
            line = lines[lineno]
            lineno += 1
            start = lineno
            # join continued macro definitions in the preamble
            if define_re.match(line.strip()) and self.section in ("preamble", "package"):
                while line.endswith("\\") and lineno < len(lines):
                    line = line[:-1] + "\n" + lines[lineno]
                    lineno += 1
            self.parse_line(line, start)

        if self.open_branches:
            raise ParseError(
                "Unterminated conditional block, missing %endif",
                lineno=self.open_branches[-1].lineno,
            )

        self._check_references()
        return self.recipe

    def parse_line(self, line: str, lineno: int) -> None:
        stripped = line.strip()
        depth = len(self.open_branches)

        if stripped and depth in self.closed_family and not stripped.startswith("%if"):
            del self.closed_family[depth]

        if match := conditional_re.match(stripped):
            self.parse_conditional(match.group("keyword"), match.group("args") or "", lineno)
            return

        if stripped.startswith("%") and (match := section_re.match(stripped)):
            self.parse_section_header(match.group("section"), match.group("args") or "", lineno)
            return

        if match := define_re.match(stripped):
            self.recipe.macro_definitions.append(
                MacroDefinition(
                    match.group("name"),
                    (match.group("body") or "").strip(),
                    match.group("kind") == "global",
                    self.scope,
                    lineno,
                )
            )
            return

        if self.section in ("preamble", "package"):
            self.parse_preamble_line(stripped, lineno)
        elif self.section == "description":
            self.recipe.descriptions[self.package].append(Line(line, self.scope, lineno))
        elif self.section == "files":
            if stripped and not stripped.startswith("#"):
                for entry in parse_files_line(stripped):
                    self.recipe.files[self.package].append(FileItem(entry, self.scope, lineno))
        elif self.section == "changelog":
            self.recipe.changelog.append(Line(line, self.scope, lineno))
        else:
            self.recipe.stages[STAGE_SECTIONS[self.section]].append(
                Line(line, self.scope, lineno)
            )

    def parse_preamble_line(self, stripped: str, lineno: int) -> None:
        if not stripped or stripped.startswith("#"):
            return

        if stripped.startswith("%"):
            log.debug("line %d: ignoring macro call in preamble: %s", lineno, stripped)
            return

        match = tag_re.match(stripped)
        if not match:
            raise ParseError(f"Malformed preamble line: {stripped}", lineno=lineno)

        raw_name = match.group("tag")
        name = canonical_tag(raw_name) or raw_name
        value = match.group("value")

        if not is_dependency_tag(name):
            key = (name, self.package, self.scope)
            if key in self._seen_tags:
                raise ParseError(f"Duplicate {name} tag", lineno=lineno)
            self._seen_tags.add(key)

        self.recipe.tags.append(Tag(name, value, self.package, self.scope, lineno))

    def _package_arg(self, section: str, args: str, lineno: int, required: bool) -> Optional[str]:
        try:
            argv = shlex.split(args)
        except ValueError as exc:
            raise ParseError(f"Malformed %{section} header: {exc}", lineno=lineno) from exc

        if not argv:
            if required:
                raise ParseError(f"%{section} needs a package name", lineno=lineno)
            return None

        explicit = argv[0] == "-n"
        if explicit:
            argv = argv[1:]
            if not argv:
                raise ParseError(f"%{section} -n needs a package name", lineno=lineno)

        if len(argv) > 1 or argv[0].startswith("-"):
            raise ParseError(f"Unexpected arguments to %{section}: {args}", lineno=lineno)

        return subpackage_name(argv[0], explicit)

    def parse_section_header(self, section: str, args: str, lineno: int) -> None:
        if section in STAGE_SECTIONS or section == "changelog":
            if args:
                raise ParseError(f"Unexpected arguments to %{section}: {args}", lineno=lineno)
            self.section = section
            self.package = None
        else:
            self.package = self._package_arg(section, args, lineno, required=section == "package")
            self.section = section
            if section == "package":
                self._declared.setdefault(self.package, lineno)
            elif section == "description":
                self.recipe.descriptions.setdefault(self.package, [])
            else:
                self.recipe.files.setdefault(self.package, [])

        self.recipe.sections.append(Section(section, self.package, self.scope, lineno))

    def parse_conditional(self, keyword: str, args: str, lineno: int) -> None:
        recipe = self.recipe
        depth = len(self.open_branches)

        if keyword in ("if", "ifarch", "ifnarch"):
            if keyword == "if":
                guard = parse_expression(args, lineno)
            else:
                guard = parse_arch_test(keyword, args, lineno)

            family = self.closed_family.pop(depth, None)
            if family is None or not any(
                branch.kind == "if" and is_negation(branch.guard, guard)
                for branch in family.branches
            ):
                family = ConditionalFamily(len(recipe.families), self.scope, lineno)
                recipe.families[family.family_id] = family
            else:
                log.debug(
                    "line %d: joining %%%s block with complementary family at line %d",
                    lineno,
                    keyword,
                    family.lineno,
                )

            ref = family.add_branch("if", guard, lineno)
            self.open_branches.append(_OpenBranch(family, ref, lineno))
            return

        if not self.open_branches:
            raise ParseError(f"%{keyword} without matching %if", lineno=lineno)

        current = self.open_branches[-1]
        family = current.family

        if keyword == "endif":
            if args:
                raise ParseError(f"Unexpected arguments to %endif: {args}", lineno=lineno)
            self.open_branches.pop()
            if not family.has_default:
                self.closed_family[len(self.open_branches)] = family
            return

        if family.branches[current.ref.index].kind == "else":
            raise ParseError(f"%{keyword} after %else", lineno=lineno)

        if keyword == "elif":
            ref = family.add_branch("elif", parse_expression(args, lineno), lineno)
        else:
            if args:
                raise ParseError(f"Unexpected arguments to %else: {args}", lineno=lineno)
            ref = family.add_branch("else", None, lineno)

        self.open_branches[-1] = _OpenBranch(family, ref, current.lineno)

    def _declared_package(self, package: Optional[str]) -> Optional[str]:
        """Find the declaration a sub-package reference points to.

        References can differ in spelling from the declaration, e.g.
        `%files bar` for `%package -n foo-bar` if Name is foo.
        """
        if package in self._declared:
            return package

        name = self.recipe.metadata.get("Name")
        if not name:
            return None

        def _with_name(raw: str) -> str:
            return raw.replace("%{name}", name)

        for declared in self._declared:
            if declared is not None and _with_name(declared) == _with_name(package):
                return declared
        return None

    def _check_references(self) -> None:
        recipe = self.recipe
        for index, section in enumerate(recipe.sections):
            declared = self._declared_package(section.package)
            if declared is None and section.package is not None:
                raise ParseError(
                    f"%{section.kind} for undeclared package {section.package}",
                    lineno=section.lineno,
                )
            if declared == section.package:
                continue

            log.debug(
                "line %d: %%%s %s refers to package %s",
                section.lineno,
                section.kind,
                section.package,
                declared,
            )
            recipe.sections[index] = section._replace(package=declared)
            for table in (recipe.descriptions, recipe.files):
                if section.package in table:
                    items = table.pop(section.package)
                    table[declared] = sorted(
                        table.get(declared, []) + items, key=lambda item: item.lineno
                    )


def parse_recipe(text: str, *, filename: Optional[str] = None) -> Recipe:
    """Parse recipe text.

    :param text: The recipe source
    :param filename: Name of the recipe file, used in messages
    :return: the parsed recipe
    """
    return RecipeParser(filename=filename).parse(text)


def find_recipe(spec_or_path: Union[str, Path]) -> Path:
    """Locate the recipe file for a path.

    A directory is expected to contain ``<dirname>.spec``.
    """
    if isinstance(spec_or_path, str):
        spec_or_path = Path(spec_or_path)

    spec_or_path = spec_or_path.absolute()

    if not spec_or_path.exists():
        raise FileNotFoundError(f"Spec file or path '{spec_or_path}' doesn't exist.")
    elif spec_or_path.is_dir():
        specfile = spec_or_path / f"{spec_or_path.name}.spec"
        if not specfile.exists():
            raise FileNotFoundError(f"Spec file '{specfile}' doesn't exist in '{spec_or_path}'.")
        return specfile
    elif spec_or_path.is_file():
        if spec_or_path.suffix != ".spec":
            raise ValueError("File specified as `spec_or_path` must have '.spec' as an extension.")
        return spec_or_path
    else:
        raise SpecialFileError("File specified as `spec_or_path` is not a regular file.")


def parse_recipe_file(spec_or_path: Union[str, Path]) -> Recipe:
    specfile = find_recipe(spec_or_path)
    log.debug("Parsing %s", specfile)
    with specfile.open("r", encoding="utf-8", errors="replace") as fp:
        return parse_recipe(fp.read(), filename=str(specfile))
