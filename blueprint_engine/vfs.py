"""In-memory virtual file system with lazy disk fallback.

Every blueprint of a run edits the same ``VirtualFileSystem``.  Files are
loaded from the project root on first access, edited in memory, and written
back in one pass by ``flush_to_disk``.  Nothing else in the engine touches
persistent storage.
"""

from __future__ import annotations

import asyncio
import posixpath
import re
from dataclasses import dataclass
from pathlib import Path

from .config import EngineConfig
from .errors import FileNotFoundInProjectError, FlushError, PreconditionError, StructuralError
from .formats import dump_tree, format_for, parse_tree
from .merge import shallow_merge
from .utils import print_warning

_DRIVE_RE = re.compile(r"^[A-Za-z]:/")
_SEPARATORS_RE = re.compile(r"/{2,}")


@dataclass
class VirtualFile:
    """One staged file.

    Attributes:
        path: Normalised project-relative path (first-seen casing).
        content: Current text content.
        loaded: ``True`` when the entry was lazily read from disk.
        dirty: ``True`` once the entry was created or changed during this run.
    """

    path: str
    content: str
    loaded: bool = False
    dirty: bool = True


class VirtualFileSystem:
    """Staging area for project files.

    Args:
        project_root: Directory that relative paths resolve against. Defaults
            to ``config.project_root``.
        config: Engine configuration (case folding, JSON indent, verbosity).
    """

    def __init__(
        self,
        project_root: str | Path | None = None,
        config: EngineConfig | None = None,
    ) -> None:
        self.config = config or EngineConfig()
        root = Path(project_root) if project_root is not None else self.config.project_root
        self.root = root.expanduser().resolve()
        self.fold_case = self.config.fold_path_case
        self.disk_reads = 0
        self.warnings: list[str] = []
        self._files: dict[str, VirtualFile] = {}

    # ------------------------------------------------------------------
    # Paths
    # ------------------------------------------------------------------

    def normalize(self, path: str | Path) -> str:
        """Return the canonical project-relative form of *path*.

        Separators are unified to ``/``, repeated separators and ``.``/``..``
        segments are collapsed, and absolute paths inside the project root are
        rebased onto it.

        Raises:
            PreconditionError: If the path is empty or escapes the project root.
        """
        raw = str(path).strip().replace("\\", "/")
        raw = _SEPARATORS_RE.sub("/", raw)

        if raw.startswith("/") or _DRIVE_RE.match(raw):
            root = self.root.as_posix().rstrip("/")
            probe, base = (raw.lower(), root.lower()) if self.fold_case else (raw, root)
            if probe == base:
                raw = ""
            elif probe.startswith(base + "/"):
                raw = raw[len(root) + 1 :]
            else:
                raise PreconditionError(f"Path is outside the project root: {path}", path=str(path))

        normalized = posixpath.normpath(raw) if raw else "."
        if normalized in (".", ""):
            raise PreconditionError("Empty path", path=str(path))
        if normalized == ".." or normalized.startswith("../"):
            raise PreconditionError(f"Path escapes the project root: {path}", path=str(path))
        return normalized

    def disk_path(self, path: str | Path) -> Path:
        """Absolute on-disk location of a project path."""
        return self.root / self.normalize(path)

    def _key(self, normalized: str) -> str:
        return normalized.lower() if self.fold_case else normalized

    # ------------------------------------------------------------------
    # Lookup and lazy loading
    # ------------------------------------------------------------------

    def _lookup(self, path: str | Path) -> tuple[str, str, VirtualFile | None]:
        """Return ``(normalized, key, entry)`` loading the file from disk if needed.

        A miss is not remembered: files that external commands create mid-run
        are picked up by the next lookup.

        Raises:
            StructuralError: If the file on disk is not valid UTF-8 text.
        """
        normalized = self.normalize(path)
        key = self._key(normalized)
        entry = self._files.get(key)
        if entry is not None:
            return normalized, key, entry

        disk_file = self.root / normalized
        if disk_file.is_file():
            try:
                content = disk_file.read_text(encoding="utf-8")
            except UnicodeDecodeError as exc:
                raise StructuralError(
                    f"{normalized} is not valid UTF-8 text: {exc.reason}", path=normalized
                ) from exc
            self.disk_reads += 1
            entry = VirtualFile(path=normalized, content=content, loaded=True, dirty=False)
            self._files[key] = entry
        return normalized, key, entry

    def load_file(self, path: str | Path) -> bool:
        """Pre-load *path* into the VFS; returns whether it exists anywhere."""
        return self._lookup(path)[2] is not None

    def read_file(self, path: str | Path) -> str:
        """Return the content of *path*, lazily loading it from disk once.

        Raises:
            FileNotFoundInProjectError: If the path is neither staged nor on disk.
        """
        normalized, _, entry = self._lookup(path)
        if entry is None:
            raise FileNotFoundInProjectError(f"File not found: {normalized}", path=normalized)
        return entry.content

    def file_exists(self, path: str | Path) -> bool:
        """Whether *path* is staged in the VFS.  Never touches the disk."""
        return self._key(self.normalize(path)) in self._files

    def get_file(self, path: str | Path) -> VirtualFile | None:
        return self._files.get(self._key(self.normalize(path)))

    # ------------------------------------------------------------------
    # Mutation
    # ------------------------------------------------------------------

    def _store(self, normalized: str, key: str, content: str) -> None:
        entry = self._files.get(key)
        if entry is None:
            self._files[key] = VirtualFile(path=normalized, content=content)
        else:
            entry.content = content
            entry.dirty = True

    def create_file(self, path: str | Path, content: str) -> None:
        """Stage a new file.

        Raises:
            PreconditionError: If the path is already staged.
        """
        normalized = self.normalize(path)
        key = self._key(normalized)
        if key in self._files:
            raise PreconditionError(f"File already exists: {normalized}", path=normalized)
        self._store(normalized, key, content)

    def write_file(self, path: str | Path, content: str, *, merge: bool = True) -> None:
        """Upsert *path*.

        When ``merge`` is true and a dictionary-shaped file (JSON/YAML) is
        already staged, the top-level keys of the old and new trees are
        overlaid (new keys win).  If either side cannot be parsed the content
        is overwritten and a warning is recorded.
        """
        normalized = self.normalize(path)
        key = self._key(normalized)
        existing = self._files.get(key)
        fmt = format_for(normalized)

        if merge and fmt and existing is not None:
            try:
                merged = shallow_merge(
                    parse_tree(existing.content, fmt, normalized),
                    parse_tree(content, fmt, normalized),
                )
                content = dump_tree(merged, fmt, self.config.json_indent)
            except StructuralError as exc:
                self._warn(f"{exc.message}; overwriting {normalized}")

        self._store(normalized, key, content)

    def append_to_file(self, path: str | Path, content: str) -> None:
        """Append *content*, creating the file when it exists nowhere."""
        normalized, key, entry = self._lookup(path)
        self._store(normalized, key, content if entry is None else entry.content + content)

    def prepend_to_file(self, path: str | Path, content: str) -> None:
        """Prepend *content*, creating the file when it exists nowhere."""
        normalized, key, entry = self._lookup(path)
        self._store(normalized, key, content if entry is None else content + entry.content)

    def clear(self) -> None:
        self._files.clear()
        self.warnings.clear()
        self.disk_reads = 0

    # ------------------------------------------------------------------
    # Inspection
    # ------------------------------------------------------------------

    def get_all_files(self) -> dict[str, str]:
        """Snapshot of every staged path and its content."""
        return {entry.path: entry.content for entry in self._files.values()}

    def dirty_files(self) -> list[str]:
        return [entry.path for entry in self._files.values() if entry.dirty]

    def drain_warnings(self) -> list[str]:
        """Return and forget the warnings recorded since the last call."""
        drained, self.warnings = self.warnings, []
        return drained

    def __len__(self) -> int:
        return len(self._files)

    def __contains__(self, path: object) -> bool:
        return isinstance(path, (str, Path)) and self.file_exists(path)

    def _warn(self, message: str) -> None:
        self.warnings.append(message)
        if self.config.verbose:
            print_warning(message)

    # ------------------------------------------------------------------
    # Flush
    # ------------------------------------------------------------------

    async def flush_to_disk(self) -> list[str]:
        """Write every staged entry under the project root.

        Parent directories are created as needed.  Files on disk that were
        never staged are left untouched.

        Returns:
            Project-relative paths written, in staging order.

        Raises:
            FlushError: If a write fails.  Files written before the failure
                stay on disk and are listed in ``FlushError.written``.
        """
        written: list[str] = []
        for entry in list(self._files.values()):
            target = self.root / entry.path
            try:
                await asyncio.to_thread(_write_file, target, entry.content)
            except OSError as exc:
                raise FlushError(
                    f"Failed to write {entry.path}: {exc}",
                    path=entry.path,
                    written=written,
                ) from exc
            entry.dirty = False
            written.append(entry.path)
        return written


def _write_file(path: Path, content: str) -> None:
    """Synchronous helper: create parent dirs and write content."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")
