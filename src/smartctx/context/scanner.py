"""File system scanner.

Walks a project tree and produces FileDescriptors for source files,
skipping ignored directories, generated artifacts, oversized files and
simple ``.gitignore`` patterns. Import specifiers are extracted with
regular expressions for JavaScript/TypeScript and Python sources.
"""

from __future__ import annotations

import fnmatch
import os
import re
from datetime import UTC, datetime
from pathlib import Path

from smartctx.context.models import FileDescriptor, ScanError, ScanResult
from smartctx.core.constants import (
    DEFAULT_CODE_EXTENSIONS,
    DEFAULT_IGNORE_DIRS,
    DEFAULT_IGNORE_SUFFIXES,
)
from smartctx.core.logging import get_logger

_logger = get_logger("context.scanner")

_JS_EXTENSIONS = frozenset({".js", ".jsx", ".ts", ".tsx", ".mjs", ".cjs", ".vue", ".svelte"})
_ES_IMPORT_RE = re.compile(
    r"""import\s+(?:(?:\{[^}]*\}|\*\s+as\s+\w+|\w+)(?:\s*,\s*\{[^}]*\})?\s+from\s+)?['"]([^'"]+)['"]"""
)
_REQUIRE_RE = re.compile(r"""require\s*\(\s*['"]([^'"]+)['"]\s*\)""")
_PY_FROM_RE = re.compile(r"^\s*from\s+(\.*[\w.]*)\s+import\s", re.MULTILINE)
_PY_IMPORT_RE = re.compile(r"^\s*import\s+([\w.]+(?:\s*,\s*[\w.]+)*)", re.MULTILINE)


def extract_imports(path: str, content: str) -> tuple[str, ...]:
    """Import specifiers declared by a source file, in first-seen order."""
    ext = os.path.splitext(path)[1]
    found: list[str] = []
    if ext in _JS_EXTENSIONS:
        found.extend(_ES_IMPORT_RE.findall(content))
        found.extend(_REQUIRE_RE.findall(content))
    elif ext == ".py":
        found.extend(m for m in _PY_FROM_RE.findall(content) if m)
        for group in _PY_IMPORT_RE.findall(content):
            found.extend(name.strip() for name in group.split(","))
    return tuple(dict.fromkeys(found))


def load_gitignore(project_root: Path) -> list[str]:
    """Non-comment patterns of the project's top-level .gitignore."""
    try:
        text = (project_root / ".gitignore").read_text(encoding="utf-8")
    except OSError:
        return []
    patterns = []
    for line in text.splitlines():
        line = line.strip()
        if line and not line.startswith(("#", "!")):
            patterns.append(line.rstrip("/"))
    return patterns


def is_ignored(rel_path: str, patterns: list[str]) -> bool:
    """Whether a project-relative path matches any simple gitignore pattern."""
    name = rel_path.rsplit("/", 1)[-1]
    for pattern in patterns:
        anchored = pattern.lstrip("/")
        if "/" in anchored:
            if fnmatch.fnmatch(rel_path, anchored) or rel_path.startswith(anchored + "/"):
                return True
        elif fnmatch.fnmatch(name, anchored) or any(
            fnmatch.fnmatch(part, anchored) for part in rel_path.split("/")[:-1]
        ):
            return True
    return False


class FileSystemScanner:
    """Scans a project directory into a ScanResult.

    Files that cannot be read become ScanErrors instead of failing the scan.
    """

    def __init__(
        self,
        extensions: frozenset[str] = DEFAULT_CODE_EXTENSIONS,
        ignore_dirs: frozenset[str] = DEFAULT_IGNORE_DIRS,
        max_file_size: int = 1024 * 1024,
        use_gitignore: bool = True,
    ) -> None:
        self.extensions = extensions
        self.ignore_dirs = ignore_dirs
        self.max_file_size = max_file_size
        self.use_gitignore = use_gitignore

    def scan(self, project_root: Path) -> ScanResult:
        root = Path(project_root)
        patterns = load_gitignore(root) if self.use_gitignore else []
        files: list[FileDescriptor] = []
        errors: list[ScanError] = []

        for dirpath, dirnames, filenames in os.walk(root):
            rel_dir = Path(dirpath).relative_to(root).as_posix()
            rel_dir = "" if rel_dir == "." else rel_dir
            dirnames[:] = sorted(
                d for d in dirnames
                if d not in self.ignore_dirs
                and not is_ignored(f"{rel_dir}/{d}".lstrip("/"), patterns)
            )
            for filename in sorted(filenames):
                rel_path = f"{rel_dir}/{filename}".lstrip("/")
                if not self._wanted(rel_path, patterns):
                    continue
                descriptor, error = self._describe(root, rel_path)
                if descriptor is not None:
                    files.append(descriptor)
                if error is not None:
                    errors.append(error)

        _logger.debug(
            "codebase_scanned",
            project_root=str(root),
            files=len(files),
            errors=len(errors),
        )
        return ScanResult(files=tuple(files), errors=tuple(errors))

    def _wanted(self, rel_path: str, patterns: list[str]) -> bool:
        name = rel_path.rsplit("/", 1)[-1]
        if name.startswith(".env") or name.endswith(DEFAULT_IGNORE_SUFFIXES):
            return False
        if os.path.splitext(name)[1].lower() not in self.extensions:
            return False
        return not is_ignored(rel_path, patterns)

    def _describe(
        self, root: Path, rel_path: str
    ) -> tuple[FileDescriptor | None, ScanError | None]:
        full_path = root / rel_path
        try:
            stat = full_path.stat()
            if stat.st_size > self.max_file_size:
                return None, None
            content = full_path.read_text(encoding="utf-8", errors="replace")
        except OSError as e:
            _logger.debug("file_unreadable", path=rel_path, error=str(e))
            return None, ScanError(path=rel_path, message=str(e))
        return (
            FileDescriptor(
                path=rel_path,
                size=stat.st_size,
                last_modified=datetime.fromtimestamp(stat.st_mtime, UTC),
                imports=extract_imports(rel_path, content),
            ),
            None,
        )


__all__ = ["FileSystemScanner", "extract_imports", "is_ignored", "load_gitignore"]
