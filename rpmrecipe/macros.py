"""
Expand RPM-style macros in recipe text
"""

import logging
import os
import re
from collections.abc import Mapping
from typing import Optional

from .exc import MacroExpansionError

log = logging.getLogger(__name__)

MAX_DEPTH = 64

name_re = re.compile(r"[A-Za-z_][A-Za-z0-9_]*")
source_ref_re = re.compile(r"^(?P<kind>[SP]):(?P<number>\d+)$")
command_re = re.compile(r"^\s*%(?P<name>[A-Za-z_][A-Za-z0-9_]*)(?:\s+(?P<args>.*))?$")
positional_re = re.compile(r"%(?:\*|\{\*\}|(?P<num>[1-9])|\{(?P<bnum>[1-9])\})")


def _matching_brace(text: str, start: int) -> int:
    """Return the index of the brace closing the one at *start*."""
    depth = 0
    for index in range(start, len(text)):
        char = text[index]
        if char == "{":
            depth += 1
        elif char == "}":
            depth -= 1
            if not depth:
                return index
    raise MacroExpansionError(f"Unterminated macro reference: {text[start - 1:]}")


class MacroExpander:
    """Expand macros from a set of definitions.

    Undefined macros are left alone, like rpm does.
    """

    def __init__(self, macros: Optional[Mapping[str, str]] = None):
        self.macros = dict(macros or {})

    def __contains__(self, name: str) -> bool:
        return name in self.macros

    def define(self, name: str, body: str) -> None:
        self.macros[name] = body

    def undefine(self, name: str) -> None:
        self.macros.pop(name, None)

    def copy(self) -> "MacroExpander":
        return type(self)(self.macros)

    def expand(self, text: str, _depth: int = 0) -> str:
        if _depth > MAX_DEPTH:
            raise MacroExpansionError("Too many levels of recursion in macro expansion")

        if "%" not in text:
            return text

        out = []
        pos = 0
        length = len(text)
        while pos < length:
            char = text[pos]
            if char != "%" or pos + 1 == length:
                out.append(char)
                pos += 1
                continue

            nxt = text[pos + 1]
            if nxt == "%":
                out.append("%")
                pos += 2
            elif nxt == "{":
                end = _matching_brace(text, pos + 1)
                inner = text[pos + 2 : end]
                out.append(self._expand_reference(inner, text[pos : end + 1], _depth))
                pos = end + 1
            else:
                # %name, %?name, %!?name
                prefix_match = re.match(r"!?\??", text[pos + 1 :])
                prefix = prefix_match.group(0)
                match = name_re.match(text, pos + 1 + len(prefix))
                if not match or (prefix and "?" not in prefix):
                    out.append(char)
                    pos += 1
                    continue
                out.append(
                    self._expand_reference(
                        prefix + match.group(0), text[pos : match.end()], _depth
                    )
                )
                pos = match.end()

        return "".join(out)

    def _expand_reference(self, inner: str, literal: str, depth: int) -> str:
        if source_match := source_ref_re.match(inner):
            return self._source_path(source_match.group("kind"), source_match.group("number"))

        negate = False
        conditional = False
        while inner[:1] in ("!", "?"):
            if inner[0] == "!":
                negate = not negate
            else:
                conditional = True
            inner = inner[1:]

        if conditional:
            name, sep, alternative = inner.partition(":")
            defined = name in self.macros
            if sep:
                if defined != negate:
                    return self.expand(alternative, depth + 1)
                return ""
            if negate or not defined:
                return ""
            return self.expand(self.macros[name], depth + 1)

        if inner.startswith("expand:"):
            return self.expand(self.expand(inner[7:], depth + 1), depth + 1)

        name, _, args = inner.partition(" ")
        if name == "nil":
            return ""
        if name in ("with", "without"):
            flag = args.strip()
            enabled = f"with_{flag}" in self.macros
            return "1" if enabled == (name == "with") else "0"
        if name not in self.macros:
            log.debug("Leaving undefined macro alone: %s", literal)
            return literal
        return self.expand(self.macros[name], depth + 1)

    def _source_path(self, kind: str, number: str) -> str:
        macro = ("SOURCE" if kind == "S" else "PATCH") + number
        value = self.macros.get(macro)
        if value is None:
            raise MacroExpansionError(f"No {macro} defined")
        value = self.expand(value)
        sourcedir = self.macros.get("_sourcedir")
        if sourcedir:
            return os.path.join(self.expand(sourcedir), os.path.basename(value))
        return value

    def expand_command(self, line: str) -> str:
        """Expand a command line of a stage.

        A leading macro is called with the rest of the line as its
        arguments, which its body can use as ``%*`` or ``%1``…``%9``.
        """
        match = command_re.match(line)
        if not match or match.group("name") not in self.macros:
            return self.expand(line)

        args = self.expand(match.group("args") or "")
        argv = args.split()

        def _substitute(arg_match: re.Match) -> str:
            num = arg_match.group("num") or arg_match.group("bnum")
            if num is None:
                return args
            index = int(num) - 1
            return argv[index] if index < len(argv) else ""

        body = positional_re.sub(_substitute, self.macros[match.group("name")])
        return self.expand(body)
