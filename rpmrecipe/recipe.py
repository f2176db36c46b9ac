import re
from collections.abc import Iterable, Mapping
from enum import Enum
from types import MappingProxyType
from typing import Any, NamedTuple, Optional

from .conditions import Expr

# Tags with a single value per package, by their lowercase spelling
SCALAR_TAGS = {
    "name": "Name",
    "epoch": "Epoch",
    "version": "Version",
    "release": "Release",
    "summary": "Summary",
    "license": "License",
    "url": "URL",
    "group": "Group",
    "buildarch": "BuildArch",
    "vendor": "Vendor",
    "packager": "Packager",
    "exclusivearch": "ExclusiveArch",
    "excludearch": "ExcludeArch",
}

DEPENDENCY_TAGS = {
    "buildrequires": "BuildRequires",
    "requires": "Requires",
    "provides": "Provides",
    "conflicts": "Conflicts",
    "obsoletes": "Obsoletes",
    "recommends": "Recommends",
    "suggests": "Suggests",
}

DEPENDENCY_OPERATORS = ("<", "<=", "=", ">=", ">")

numbered_tag_re = re.compile(r"^(?P<kind>source|patch)(?P<number>\d*)$", re.IGNORECASE)


def canonical_tag(name: str) -> Optional[str]:
    """Return the canonical spelling of a preamble tag.

    Qualifiers like in ``Requires(post)`` are kept.
    """
    base, paren, qualifier = name.partition("(")
    lowered = base.lower()
    if lowered in SCALAR_TAGS:
        return SCALAR_TAGS[lowered]
    if lowered in DEPENDENCY_TAGS:
        return DEPENDENCY_TAGS[lowered] + paren + qualifier
    if match := numbered_tag_re.match(base):
        return match.group("kind").capitalize() + (match.group("number") or "0")
    return None


def is_dependency_tag(tag: str) -> bool:
    return tag.partition("(")[0].lower() in DEPENDENCY_TAGS


class Stage(str, Enum):
    """Lifecycle stages, in execution order."""

    prep = "prep"
    build = "build"
    install = "install"
    check = "check"
    package = "package"


class Dependency(NamedTuple):
    name: str
    operator: Optional[str] = None
    evr: Optional[str] = None

    def __str__(self) -> str:
        if self.operator:
            return f"{self.name} {self.operator} {self.evr}"
        return self.name

    def expand(self, expander) -> "Dependency":
        return Dependency(
            expander.expand(self.name),
            self.operator,
            expander.expand(self.evr) if self.evr is not None else None,
        )

    @classmethod
    def parse_list(cls, value: str) -> list["Dependency"]:
        """Parse the value of a dependency tag.

        Entries are separated by commas or whitespace, rich dependencies in
        parentheses are kept as a whole.
        """
        tokens = []
        pos = 0
        while pos < len(value):
            char = value[pos]
            if char in " \t,":
                pos += 1
            elif char == "(":
                depth = 0
                start = pos
                while pos < len(value):
                    if value[pos] == "(":
                        depth += 1
                    elif value[pos] == ")":
                        depth -= 1
                        if not depth:
                            break
                    pos += 1
                pos += 1
                tokens.append(value[start:pos])
            else:
                start = pos
                brace_depth = 0
                while pos < len(value) and (brace_depth or value[pos] not in " \t,"):
                    if value[pos] == "{":
                        brace_depth += 1
                    elif value[pos] == "}":
                        brace_depth -= 1
                    pos += 1
                tokens.append(value[start:pos])

        dependencies = []
        while tokens:
            name = tokens.pop(0)
            if len(tokens) >= 2 and tokens[0] in DEPENDENCY_OPERATORS:
                operator = tokens.pop(0)
                dependencies.append(cls(name, operator, tokens.pop(0)))
            else:
                dependencies.append(cls(name))
        return dependencies


class FileEntry(NamedTuple):
    """A path glob of a %files section, optionally with its directive(s)."""

    path: str
    directive: Optional[str] = None

    def __str__(self) -> str:
        if self.directive:
            return f"{self.directive} {self.path}"
        return self.path


file_directive_re = re.compile(
    r"^%(?:license|doc|docdir|dir|config|ghost|attr|verify|exclude|lang|caps|readme|"
    r"artifact|missingok)(?:\([^)]*\))?$"
)


def parse_files_line(line: str) -> list[FileEntry]:
    """Parse one line of a %files section into entries.

    %defattr lines don't yield entries.
    """
    words = line.split()
    directives = []
    while words and (file_directive_re.match(words[0]) or words[0].startswith("%defattr")):
        word = words.pop(0)
        if not word.startswith("%defattr"):
            directives.append(word)
    directive = " ".join(directives) or None
    return [FileEntry(word, directive) for word in words]


class BranchRef(NamedTuple):
    family_id: int
    index: int


Scope = tuple[BranchRef, ...]


class Branch(NamedTuple):
    kind: str  # "if", "elif" or "else"
    guard: Optional[Expr]
    lineno: int

    @property
    def is_default(self) -> bool:
        return self.guard is None


class ConditionalFamily:
    """Mutually exclusive conditional branches.

    An %if/%elif/%else chain forms one family, as does a sequence of %if
    blocks with complementary guards.
    """

    def __init__(self, family_id: int, scope: "Scope", lineno: int):
        self.family_id = family_id
        self.scope = scope
        self.lineno = lineno
        self.branches: list[Branch] = []

    def __repr__(self) -> str:
        return (
            f"<ConditionalFamily {self.family_id} at line {self.lineno}:"
            + f" {len(self.branches)} branches>"
        )

    def add_branch(self, kind: str, guard: Optional[Expr], lineno: int) -> BranchRef:
        self.branches.append(Branch(kind, guard, lineno))
        return BranchRef(self.family_id, len(self.branches) - 1)

    @property
    def has_default(self) -> bool:
        return any(branch.is_default for branch in self.branches)

    @property
    def parent(self) -> Optional[BranchRef]:
        """The branch this family is nested in, if any."""
        return self.scope[-1] if self.scope else None


class Tag(NamedTuple):
    name: str
    value: str
    package: Optional[str]
    scope: Scope
    lineno: int


class MacroDefinition(NamedTuple):
    name: str
    body: str
    is_global: bool
    scope: Scope
    lineno: int


class Line(NamedTuple):
    text: str
    scope: Scope
    lineno: int


class FileItem(NamedTuple):
    entry: FileEntry
    scope: Scope
    lineno: int


class Section(NamedTuple):
    """A section header; kind is a Stage value or package/description/files/changelog."""

    kind: str
    package: Optional[str]
    scope: Scope
    lineno: int


def subpackage_name(arg: str, explicit: bool) -> str:
    """The raw name of a sub-package declared with or without -n."""
    return arg if explicit else f"%{{name}}-{arg}"


class Recipe:
    """A parsed recipe, conditional blocks included.

    Every item records the scope (chain of conditional branches) it was
    defined in. The main package is keyed as None.
    """

    def __init__(self, filename: Optional[str] = None):
        self.filename = filename
        self.tags: list[Tag] = []
        self.macro_definitions: list[MacroDefinition] = []
        self.sections: list[Section] = []
        self.stages: dict[Stage, list[Line]] = {
            stage: [] for stage in Stage if stage is not Stage.package
        }
        self.descriptions: dict[Optional[str], list[Line]] = {}
        self.files: dict[Optional[str], list[FileItem]] = {}
        self.changelog: list[Line] = []
        self.families: dict[int, ConditionalFamily] = {}

    def __repr__(self) -> str:
        return f"<Recipe {self.filename or '<string>'}: {dict(self.metadata)}>"

    @property
    def metadata(self) -> Mapping[str, str]:
        """Unconditional scalar tags of the main package."""
        return MappingProxyType(
            {
                tag.name: tag.value
                for tag in self.tags
                if tag.package is None and not tag.scope and not is_dependency_tag(tag.name)
            }
        )

    @property
    def build_requires(self) -> list[Dependency]:
        """Unconditional build dependencies."""
        return [
            dependency
            for tag in self.tags
            if tag.name == "BuildRequires" and not tag.scope
            for dependency in Dependency.parse_list(tag.value)
        ]

    @property
    def subpackages(self) -> list[str]:
        """Raw names of all declared sub-packages, conditional ones included."""
        names = []
        for section in self.sections:
            if section.kind == "package" and section.package not in names:
                names.append(section.package)
        return names

    def fragment(self, branch_ref: BranchRef) -> dict[str, Any]:
        """Collect the items defined directly in a conditional branch."""

        def _in_branch(items: Iterable) -> list:
            return [item for item in items if item.scope and item.scope[-1] == branch_ref]

        return {
            "tags": _in_branch(self.tags),
            "macros": _in_branch(self.macro_definitions),
            "sections": _in_branch(self.sections),
            "stages": {stage: _in_branch(lines) for stage, lines in self.stages.items()},
            "descriptions": {
                package: _in_branch(lines) for package, lines in self.descriptions.items()
            },
            "files": {package: _in_branch(items) for package, items in self.files.items()},
            "families": [
                family for family in self.families.values() if family.parent == branch_ref
            ],
        }


class ResolvedPackage(NamedTuple):
    name: str
    summary: str
    tags: Mapping[str, str]
    requires: tuple[Dependency, ...]
    provides: tuple[Dependency, ...]
    dependencies: Mapping[str, tuple[Dependency, ...]]
    description: str
    files: frozenset[FileEntry]
    has_files: bool
    is_main: bool = False


class ResolvedRecipe(NamedTuple):
    """A recipe with all conditionals resolved for one build context."""

    profile: str
    metadata: Mapping[str, str]
    macros: Mapping[str, str]
    build_requires: tuple[Dependency, ...]
    stages: Mapping[Stage, tuple[str, ...]]
    packages: tuple[ResolvedPackage, ...]
    selected: tuple[BranchRef, ...]
    changelog: str
    definitions: tuple[MacroDefinition, ...] = ()

    @property
    def main_package(self) -> ResolvedPackage:
        return next(package for package in self.packages if package.is_main)

    def package(self, name: str) -> ResolvedPackage:
        for package in self.packages:
            if package.name == name:
                return package
        raise KeyError(name)
