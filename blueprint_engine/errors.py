"""Error taxonomy for the blueprint engine.

Every failure the engine can report is a ``BlueprintError`` subclass so that
the orchestrator can catch one type at its boundary and translate it into a
failed result.  The subclasses map onto the four failure families callers
care about: structural (unparseable content), precondition (the file tree is
not in the state an action expects), external (a command failed) and unknown
action (generator/engine version mismatch).
"""

from __future__ import annotations


class BlueprintError(Exception):
    """Base class for every engine error.

    Attributes:
        path: Project-relative path the error relates to, if any.
        action_type: Action type being processed when the error occurred.
    """

    def __init__(
        self,
        message: str,
        *,
        path: str | None = None,
        action_type: str | None = None,
    ) -> None:
        self.message = message
        self.path = path
        self.action_type = action_type
        super().__init__(message)

    @property
    def kind(self) -> str:
        """Short machine-readable error family name."""
        return "error"


class StructuralError(BlueprintError):
    """Content could not be parsed (malformed JSON/YAML or source module)."""

    @property
    def kind(self) -> str:
        return "structural"


class PreconditionError(BlueprintError):
    """The file tree is not in the state the operation requires."""

    @property
    def kind(self) -> str:
        return "precondition"


class FileNotFoundInProjectError(PreconditionError):
    """A path is neither staged in the VFS nor present on disk."""


class ExternalCommandError(BlueprintError):
    """An external command exited with a non-zero status."""

    def __init__(
        self,
        message: str,
        *,
        exit_code: int,
        stdout: str = "",
        stderr: str = "",
        path: str | None = None,
        action_type: str | None = None,
    ) -> None:
        self.exit_code = exit_code
        self.stdout = stdout
        self.stderr = stderr
        super().__init__(message, path=path, action_type=action_type)

    @property
    def kind(self) -> str:
        return "external"


class UnknownActionError(BlueprintError):
    """An action carried a ``type`` the engine does not handle."""

    @property
    def kind(self) -> str:
        return "unknown_action"


class TemplateError(BlueprintError):
    """A template referenced an unresolved variable or was malformed."""

    @property
    def kind(self) -> str:
        return "template"


class ModifierError(BlueprintError):
    """A modifier is unknown, got invalid params, or failed to transform."""

    @property
    def kind(self) -> str:
        return "modifier"


class FlushError(BlueprintError):
    """Writing the VFS to disk failed part-way.

    Attributes:
        written: Paths that had already been written when the failure happened.
    """

    def __init__(
        self,
        message: str,
        *,
        path: str | None = None,
        written: list[str] | None = None,
    ) -> None:
        self.written = list(written or [])
        super().__init__(message, path=path)

    @property
    def kind(self) -> str:
        return "flush"
