"""Project workspace: the generated file set under validation.

Holds file text in memory, optionally backed by a directory on disk. Writes
go through a per-file lock registry so concurrent fixes to the same file are
serialized while fixes to different files proceed independently.
"""

import logging
import os
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Dict, Iterable, Iterator, List, Optional, Tuple, Union

from .errors import ExtractionError
from .extractor.models import SourceFile
from .extractor.utils import detect_role, should_skip_directory

logger = logging.getLogger(__name__)


class ProjectWorkspace:
    """In-memory file set with per-file write locks.

    Usage:
        ws = ProjectWorkspace.from_directory("generated/app")
        with ws.locked(["main.js", "preload.js"]):
            ws.write("main.js", new_text)
    """

    def __init__(self, files: Optional[Iterable[SourceFile]] = None, root: Optional[Union[str, Path]] = None):
        self.root = Path(root) if root is not None else None
        self._files: Dict[str, SourceFile] = {}
        self._locks: Dict[str, threading.Lock] = {}
        self._registry_lock = threading.Lock()
        self.errors: List[ExtractionError] = []
        for source in files or []:
            self._files[source.path] = source

    @classmethod
    def from_files(cls, files: Iterable[Union[SourceFile, Tuple[str, str, str], Dict]]) -> "ProjectWorkspace":
        """Build a workspace from ``(path, text, role)`` tuples, dicts or SourceFiles.

        A missing role is detected from the path.
        """
        sources = []
        for item in files:
            if isinstance(item, SourceFile):
                sources.append(item)
                continue
            if isinstance(item, dict):
                path, text, role = item["path"], item.get("text", item.get("content", "")), item.get("role")
            else:
                path, text, role = item
            role = role or detect_role(path)
            if role is None:
                logger.debug(f"Skipping {path}: no contract role")
                continue
            sources.append(SourceFile(path=path, text=text, role=role))
        return cls(sources)

    @classmethod
    def from_directory(cls, directory: Union[str, Path]) -> "ProjectWorkspace":
        """Load every contract-bearing file under ``directory``."""
        return load_project(directory)

    # -------------------------------------------------------------------------
    # File access
    # -------------------------------------------------------------------------

    @property
    def paths(self) -> List[str]:
        return sorted(self._files)

    def __contains__(self, path: str) -> bool:
        return path in self._files

    def __len__(self) -> int:
        return len(self._files)

    def source_files(self) -> List[SourceFile]:
        return [self._files[p] for p in self.paths]

    def get(self, path: str) -> Optional[SourceFile]:
        return self._files.get(path)

    def read(self, path: str) -> str:
        source = self._files.get(path)
        if source is None:
            raise KeyError(path)
        return source.text

    def role_of(self, path: str) -> Optional[str]:
        source = self._files.get(path)
        return source.role if source else None

    def write(self, path: str, text: str) -> None:
        """Replace a file's text, persisting it when the workspace has a root.

        Callers hold the file's lock (see ``locked``).
        """
        source = self._files.get(path)
        if source is None:
            raise KeyError(path)
        if self.root is not None:
            target = self.root / path
            target.parent.mkdir(parents=True, exist_ok=True)
            with target.open("w", encoding="utf-8", newline="") as f:
                f.write(text)
        source.text = text
        logger.debug(f"Wrote {path} ({len(text)} chars)")

    def snapshot(self) -> Dict[str, str]:
        return {p: s.text for p, s in self._files.items()}

    # -------------------------------------------------------------------------
    # Locking
    # -------------------------------------------------------------------------

    def lock_for(self, path: str) -> threading.Lock:
        with self._registry_lock:
            lock = self._locks.get(path)
            if lock is None:
                lock = threading.Lock()
                self._locks[path] = lock
            return lock

    @contextmanager
    def locked(self, paths: Iterable[str]) -> Iterator[None]:
        """Hold the locks of several files, acquired in sorted path order."""
        ordered = sorted(set(paths))
        acquired = []
        try:
            for path in ordered:
                lock = self.lock_for(path)
                lock.acquire()
                acquired.append(lock)
            yield
        finally:
            for lock in reversed(acquired):
                lock.release()


def load_project(directory: Union[str, Path]) -> ProjectWorkspace:
    """Walk ``directory`` and load the files that carry contracts.

    Files that cannot be read or are not UTF-8 are recorded on
    ``workspace.errors`` and skipped. Line endings are kept as found.
    """
    root = Path(directory)
    sources: List[SourceFile] = []
    errors: List[ExtractionError] = []

    for dirpath, dirnames, filenames in os.walk(root):
        dirnames[:] = sorted(d for d in dirnames if not should_skip_directory(d))
        for filename in sorted(filenames):
            full = Path(dirpath) / filename
            rel = full.relative_to(root).as_posix()
            role = detect_role(rel)
            if role is None:
                continue
            try:
                with full.open("r", encoding="utf-8", newline="") as f:
                    text = f.read()
            except (OSError, UnicodeDecodeError) as e:
                logger.warning(f"Cannot read {rel}: {e}")
                errors.append(ExtractionError(rel, str(e)))
                continue
            sources.append(SourceFile(path=rel, text=text, role=role))

    workspace = ProjectWorkspace(sources, root=root)
    workspace.errors = errors
    logger.info(f"Loaded {len(sources)} file(s) from {root}")
    return workspace
