from typing import Optional


class RpmrecipeException(Exception):
    """Base class for rpmrecipe exceptions."""

    def __init__(self, *args, code: Optional[str] = None, detail: Optional[str] = None):
        super().__init__(*args)
        self.code = code
        self.detail = detail

    def __str__(self):
        if self.detail:
            return f"{', '.join(self.args)}:\n{self.detail}"
        return super().__str__()


class ParseError(RpmrecipeException):
    """Malformed recipe."""

    def __init__(self, *args, lineno: Optional[int] = None, **kwargs):
        super().__init__(*args, **kwargs)
        self.lineno = lineno

    def __str__(self):
        msg = super().__str__()
        if self.lineno is not None:
            return f"line {self.lineno}: {msg}"
        return msg


class MacroExpansionError(ParseError):
    """Macro expansion didn’t terminate or was malformed."""


class UnresolvedConditionError(RpmrecipeException):
    """No branch of a guard family matches and no default exists."""


class AmbiguousConditionError(UnresolvedConditionError):
    """More than one branch of a guard family matches."""


class StageExecutionError(RpmrecipeException):
    """An external command of a lifecycle stage failed."""

    def __init__(
        self,
        *args,
        stage: Optional[str] = None,
        command: Optional[str] = None,
        returncode: Optional[int] = None,
        **kwargs,
    ):
        super().__init__(*args, **kwargs)
        self.stage = stage
        self.command = command
        self.returncode = returncode


class ConfigError(RpmrecipeException):
    """Invalid configuration or unknown build profile."""
