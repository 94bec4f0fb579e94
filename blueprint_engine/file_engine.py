"""File modification primitives.

A thin, format-aware layer over the ``VirtualFileSystem``.  Every primitive
returns a ``FileModificationResult`` instead of raising, so the orchestrator
alone decides which failures are fatal for a given action.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Any

from .errors import BlueprintError, StructuralError
from .formats import dump_tree, format_for, parse_tree
from .merge import MergeStrategy, merge_at_path
from .vfs import VirtualFileSystem


@dataclass
class FileModificationResult:
    """Outcome of one primitive call."""

    success: bool
    file_path: str
    error: str | None = None
    error_kind: str | None = None
    exception: BlueprintError | None = None

    @classmethod
    def ok(cls, file_path: str) -> "FileModificationResult":
        return cls(success=True, file_path=file_path)

    @classmethod
    def failed(cls, file_path: str, exc: BlueprintError) -> "FileModificationResult":
        return cls(
            success=False,
            file_path=file_path,
            error=exc.message,
            error_kind=exc.kind,
            exception=exc,
        )

    def raise_for_error(self) -> None:
        """Re-raise the captured error, if any."""
        if self.exception is not None:
            raise self.exception


class FileModificationEngine:
    """Read/create/overwrite/merge/append/prepend against one VFS."""

    def __init__(self, vfs: VirtualFileSystem) -> None:
        self.vfs = vfs

    def _path(self, path: str) -> str:
        try:
            return self.vfs.normalize(path)
        except BlueprintError:
            return path

    def _run(self, path: str, operation: Callable[[], None]) -> FileModificationResult:
        display = self._path(path)
        try:
            operation()
        except BlueprintError as exc:
            if exc.path is None:
                exc.path = display
            return FileModificationResult.failed(display, exc)
        except OSError as exc:
            return FileModificationResult.failed(
                display, BlueprintError(f"I/O error on {display}: {exc}", path=display)
            )
        return FileModificationResult.ok(display)

    # ------------------------------------------------------------------
    # Primitives
    # ------------------------------------------------------------------

    def read_file(self, path: str) -> str:
        """Read *path* through the VFS (raises on absence)."""
        return self.vfs.read_file(path)

    def file_exists(self, path: str) -> bool:
        """Whether *path* is staged or present on disk."""
        return self.vfs.load_file(path)

    def create_file(self, path: str, content: str) -> FileModificationResult:
        """Create *path*; fails with a precondition error if it is staged."""
        return self._run(path, lambda: self.vfs.create_file(path, content))

    def overwrite_file(self, path: str, content: str) -> FileModificationResult:
        """Replace the content of *path* unconditionally."""
        return self._run(path, lambda: self.vfs.write_file(path, content, merge=False))

    def append(self, path: str, content: str) -> FileModificationResult:
        return self._run(path, lambda: self.vfs.append_to_file(path, content))

    def prepend(self, path: str, content: str) -> FileModificationResult:
        return self._run(path, lambda: self.vfs.prepend_to_file(path, content))

    def merge_object_file(
        self,
        path: str,
        partial: Mapping[str, Any],
        *,
        key_path: str | list[str] | None = None,
        strategy: MergeStrategy | str = MergeStrategy.DEEP,
    ) -> FileModificationResult:
        """Parse-merge-serialise a dictionary-shaped file.

        The existing tree (or ``{}`` when the file exists nowhere) is merged
        with *partial* at *key_path* using *strategy* and written back with
        stable formatting.  Parse failures are reported as structural errors
        and leave the file unchanged.
        """

        def operation() -> None:
            normalized = self.vfs.normalize(path)
            fmt = format_for(normalized)
            if fmt is None:
                raise StructuralError(
                    f"{normalized} is not a dictionary-shaped file (JSON/YAML)", path=normalized
                )
            current = self.vfs.read_file(normalized) if self.vfs.load_file(normalized) else ""
            tree = parse_tree(current, fmt, normalized)
            merged = merge_at_path(tree, key_path, partial, strategy)
            self.vfs.write_file(normalized, dump_tree(merged, fmt, self.vfs.config.json_indent), merge=False)

        return self._run(path, operation)

    def modify_file(self, path: str, transform: Callable[[str], str]) -> FileModificationResult:
        """Apply *transform* to the content of an existing file."""

        def operation() -> None:
            content = self.vfs.read_file(path)
            self.vfs.write_file(path, transform(content), merge=False)

        return self._run(path, operation)

    async def flush(self) -> list[str]:
        return await self.vfs.flush_to_disk()
