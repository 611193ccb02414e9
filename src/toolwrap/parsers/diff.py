"""Git diff parsers: unified diff text and ``--numstat`` output."""

from __future__ import annotations

import enum
import re
from dataclasses import dataclass, field

from toolwrap.config import DEFAULT_CONFIG, CoreConfig
from toolwrap.logging import get_logger
from toolwrap.models import DiffChunk, DiffFileEntry, DiffReport
from toolwrap.windowing import split_lines

logger = get_logger(__name__)

_GIT_HEADER_RE = re.compile(r'^diff --git (?:"a/((?:[^"\\]|\\.)*)"|a/(.+?)) (?:"b/((?:[^"\\]|\\.)*)"|b/(.+))$')
_HUNK_RE = re.compile(r"^@@ -\d+(?:,\d+)? \+\d+(?:,\d+)? @@")
_BRACE_RENAME_RE = re.compile(r"^(.*)\{(.*) => (.*)\}(.*)$")


class _State(enum.Enum):
    BETWEEN_FILES = "between-files"
    FILE_HEADER = "file-header"
    HUNK_HEADER = "hunk-header"
    HUNK_BODY = "hunk-body"


@dataclass
class _FileBuilder:
    file: str
    status: str = "modified"
    old_file: str | None = None
    additions: int = 0
    deletions: int = 0
    binary: bool = False
    mode: str | None = None
    chunks: list[DiffChunk] = field(default_factory=list)
    chunk_header: str | None = None
    chunk_lines: list[str] = field(default_factory=list)

    def close_chunk(self) -> None:
        if self.chunk_header is not None:
            self.chunks.append(DiffChunk(header=self.chunk_header, lines=tuple(self.chunk_lines)))
        self.chunk_header = None
        self.chunk_lines = []

    def build(self, include_chunks: bool) -> DiffFileEntry:
        self.close_chunk()
        if self.binary:
            self.additions = self.deletions = 0
        return DiffFileEntry(
            file=self.file,
            status=self.status,
            additions=self.additions,
            deletions=self.deletions,
            binary=self.binary,
            old_file=self.old_file if self.status == "renamed" else None,
            mode=self.mode,
            chunks=tuple(self.chunks) if include_chunks and not self.binary else None,
        )


def _unquote(path: str) -> str:
    return path.replace('\\"', '"').replace("\\\\", "\\")


def _header_paths(line: str) -> tuple[str, str] | None:
    m = _GIT_HEADER_RE.match(line)
    if not m:
        return None
    old = _unquote(m.group(1)) if m.group(1) is not None else m.group(2)
    new = _unquote(m.group(3)) if m.group(3) is not None else m.group(4)
    return old, new


def _apply_header_marker(builder: _FileBuilder, line: str) -> None:
    if line.startswith("new file mode "):
        builder.status = "added"
        builder.mode = line[len("new file mode "):].strip()
    elif line.startswith("deleted file mode "):
        builder.status = "deleted"
        builder.mode = line[len("deleted file mode "):].strip()
    elif line.startswith("rename from "):
        builder.status = "renamed"
        builder.old_file = _unquote(line[len("rename from "):].strip().strip('"'))
    elif line.startswith("rename to "):
        builder.status = "renamed"
        builder.file = _unquote(line[len("rename to "):].strip().strip('"'))
    elif line.startswith("new mode "):
        builder.mode = line[len("new mode "):].strip()
    elif line.startswith("Binary files ") and line.endswith(" differ"):
        builder.binary = True
    elif line.startswith("GIT binary patch"):
        builder.binary = True


def parse_unified_diff(
    text: str,
    *,
    include_chunks: bool = False,
    config: CoreConfig = DEFAULT_CONFIG,
) -> DiffReport:
    """Parse ``git diff`` output into per-file entries.

    Once more than ``config.diff_byte_ceiling`` bytes have been read the
    report is marked truncated and further hunk lines are ignored. File
    headers and status markers that follow are still recorded.
    """
    builders: list[_FileBuilder] = []
    current: _FileBuilder | None = None
    state = _State.BETWEEN_FILES
    consumed = 0
    truncated = False

    for line in split_lines(text):
        consumed += len(line.encode("utf-8", errors="replace")) + 1
        if not truncated and consumed > config.diff_byte_ceiling:
            truncated = True
            logger.debug("Diff exceeded %d bytes, ignoring further hunks", config.diff_byte_ceiling)

        if line.startswith("diff --git "):
            if current is not None:
                current.close_chunk()
            paths = _header_paths(line)
            if paths is None:
                current = None
                state = _State.BETWEEN_FILES
                continue
            current = _FileBuilder(file=paths[1])
            builders.append(current)
            state = _State.FILE_HEADER
            continue

        if current is None:
            continue

        if _HUNK_RE.match(line):
            current.close_chunk()
            if not truncated and not current.binary:
                current.chunk_header = line
            state = _State.HUNK_HEADER
            continue

        if state == _State.FILE_HEADER:
            _apply_header_marker(current, line)
            continue

        if state not in (_State.HUNK_HEADER, _State.HUNK_BODY) or truncated or current.binary:
            continue
        state = _State.HUNK_BODY
        if line.startswith("+"):
            current.additions += 1
        elif line.startswith("-"):
            current.deletions += 1
        elif not line.startswith((" ", "\\")) and line:
            # Anything else ends the hunk
            state = _State.BETWEEN_FILES
            continue
        if current.chunk_header is not None:
            current.chunk_lines.append(line)

    files = tuple(b.build(include_chunks) for b in builders)
    return DiffReport(
        files=files,
        total_additions=sum(f.additions for f in files),
        total_deletions=sum(f.deletions for f in files),
        total_files=len(files),
        truncated=truncated,
    )


def _split_rename(path: str) -> tuple[str | None, str]:
    m = _BRACE_RENAME_RE.match(path)
    if m:
        prefix, old, new, suffix = m.groups()
        old_path = (prefix + old + suffix).replace("//", "/")
        new_path = (prefix + new + suffix).replace("//", "/")
        return old_path, new_path
    if " => " in path:
        old, new = path.split(" => ", 1)
        return old, new
    return None, path


def parse_numstat(stdout: str) -> DiffReport:
    """Parse ``git diff --numstat``: 'added<TAB>deleted<TAB>path' per line.

    Binary files report '-' for both counts.
    """
    files = []
    for line in split_lines(stdout):
        parts = line.split("\t", 2)
        if len(parts) != 3:
            continue
        added, deleted, path = parts
        binary = added == "-" and deleted == "-"
        old_file, new_file = _split_rename(path)
        files.append(
            DiffFileEntry(
                file=new_file,
                status="renamed" if old_file is not None else "modified",
                additions=int(added) if added.isdigit() else 0,
                deletions=int(deleted) if deleted.isdigit() else 0,
                binary=binary,
                old_file=old_file,
            )
        )
    return DiffReport(
        files=tuple(files),
        total_additions=sum(f.additions for f in files),
        total_deletions=sum(f.deletions for f in files),
        total_files=len(files),
    )
