"""
Format recipes back into recipe text
"""

from collections.abc import Iterable, Mapping

from .recipe import Dependency, MacroDefinition, ResolvedPackage, ResolvedRecipe, Stage

# preferred order of preamble tags, others follow alphabetically
TAG_ORDER = ("Name", "Epoch", "Version", "Release", "Summary", "License", "URL")


def _tag_sort_key(tag: str) -> tuple:
    if tag in TAG_ORDER:
        return (0, TAG_ORDER.index(tag), "")
    if tag.startswith("Source") and tag[6:].isdigit():
        return (1, int(tag[6:]), "")
    if tag.startswith("Patch") and tag[5:].isdigit():
        return (2, int(tag[5:]), "")
    return (3, 0, tag)


def format_preamble(
    metadata: Mapping[str, str], build_requires: Iterable[Dependency] = ()
) -> str:
    """Format metadata tags and build dependencies as a recipe preamble."""
    lines = [f"{tag}: {metadata[tag]}" for tag in sorted(metadata, key=_tag_sort_key)]
    lines.extend(f"BuildRequires: {dependency}" for dependency in build_requires)
    return "\n".join(lines) + "\n"


def format_definitions(definitions: Iterable[MacroDefinition]) -> str:
    lines = []
    for definition in definitions:
        keyword = "global" if definition.is_global else "define"
        body = definition.body.replace("\n", "\\\n") or "%{nil}"
        lines.append(f"%{keyword} {definition.name} {body}")
    return "\n".join(lines) + "\n"


def _format_dependencies(package: ResolvedPackage) -> list[str]:
    return [
        f"{tag}: {dependency}"
        for tag, dependencies in package.dependencies.items()
        for dependency in dependencies
    ]


def format_resolved(resolved: ResolvedRecipe) -> str:
    """Format a resolved recipe, i.e. without conditionals."""
    main = resolved.main_package
    chunks = []
    if resolved.definitions:
        chunks.append(format_definitions(resolved.definitions))
    chunks.append(format_preamble(resolved.metadata, resolved.build_requires))

    dependencies = _format_dependencies(main)
    if dependencies:
        chunks.append("\n".join(dependencies) + "\n")

    chunks.append(f"%description\n{main.description}\n")

    for stage in Stage:
        if stage is Stage.package:
            continue
        body = "\n".join(resolved.stages.get(stage, ())).strip("\n")
        chunks.append(f"%{stage.value}\n{body}\n" if body else f"%{stage.value}\n")

    for package in resolved.packages:
        if package.is_main:
            continue
        lines = [f"%package -n {package.name}", f"Summary: {package.summary}"]
        lines.extend(
            f"{tag}: {value}" for tag, value in package.tags.items() if tag != "Summary"
        )
        lines.extend(_format_dependencies(package))
        chunks.append("\n".join(lines) + "\n")
        chunks.append(f"%description -n {package.name}\n{package.description}\n")

    for package in resolved.packages:
        if not package.has_files:
            continue
        header = "%files" if package.is_main else f"%files -n {package.name}"
        entries = "\n".join(str(entry) for entry in sorted(package.files))
        chunks.append(f"{header}\n{entries}\n" if entries else f"{header}\n")

    chunks.append(f"%changelog\n{resolved.changelog}\n" if resolved.changelog else "%changelog\n")

    return "\n".join(chunks)
