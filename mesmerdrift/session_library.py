"""Session library for MesmerDrift.

Keeps the user's session definitions in a per-user folder of
``*.session.json`` files. Bundled sessions (Morning Drift) are copied in on
first use and stay read-only; imported sessions are custom and can be
deleted again.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, replace
from enum import Enum
from pathlib import Path
from typing import Dict, List, Optional, Union

from .platform_paths import ensure_dir, get_bundled_sessions_dir, get_sessions_dir
from .session.definition import SessionDefinition
from .session.loader import SESSION_SUFFIX, load_session_definition, save_session_definition

logger = logging.getLogger(__name__)


class SessionSource(str, Enum):
    BUILT_IN = "built_in"
    CUSTOM = "custom"


@dataclass
class LibraryEntry:
    definition: SessionDefinition
    path: Path
    source: SessionSource

    @property
    def id(self) -> str:
        return self.definition.id

    @property
    def can_delete(self) -> bool:
        return self.source is not SessionSource.BUILT_IN


def safe_file_stem(text: str) -> str:
    """Reduce *text* to a filename stem of letters, digits, ``_`` and ``-``."""
    return re.sub(r"[^A-Za-z0-9_-]+", "_", text).strip("_") or "session"


def export_file_name(definition: SessionDefinition) -> str:
    """Default export filename, e.g. ``Morning_Drift.session.json``."""
    return f"{safe_file_stem(definition.name or definition.id)}{SESSION_SUFFIX}"


class SessionLibrary:
    """Lists, imports, exports and deletes session definitions.

    Args:
        sessions_dir: User sessions folder (default: per-user data dir)
        bundled_dir: Folder with shipped sessions (default: package data)
    """

    def __init__(self, sessions_dir: Optional[Path] = None, bundled_dir: Optional[Path] = None):
        self.sessions_dir = ensure_dir(Path(sessions_dir) if sessions_dir else get_sessions_dir())
        self.bundled_dir = Path(bundled_dir) if bundled_dir else get_bundled_sessions_dir()
        self._entries: Dict[str, LibraryEntry] = {}
        self._builtin_ids: set[str] = set()

        self._seed_sessions_from_bundled()
        self.reload()
        logger.info(f"[library] SessionLibrary initialized: {self.sessions_dir} ({len(self._entries)} sessions)")

    def _seed_sessions_from_bundled(self) -> None:
        if not self.bundled_dir.exists():
            return
        for src in sorted(self.bundled_dir.glob(f"*{SESSION_SUFFIX}")):
            try:
                self._builtin_ids.add(load_session_definition(src).id)
            except ValueError as exc:
                logger.warning(f"[library] Bundled session {src.name} is invalid: {exc}")
                continue
        if self.bundled_dir.resolve() == self.sessions_dir.resolve():
            return

        copied = 0
        for src in self.bundled_dir.glob(f"*{SESSION_SUFFIX}"):
            dst = self.sessions_dir / src.name
            if dst.exists():
                continue
            try:
                dst.write_bytes(src.read_bytes())
                copied += 1
            except OSError as exc:
                logger.warning(f"[library] Failed copying bundled session {src.name}: {exc}")
        if copied:
            logger.info(f"[library] Seeded {copied} bundled session(s) into {self.sessions_dir}")

    def reload(self) -> None:
        """Rescan the sessions folder; invalid files are logged and skipped."""
        self._entries.clear()
        for path in sorted(self.sessions_dir.glob(f"*{SESSION_SUFFIX}")):
            try:
                definition = load_session_definition(path)
            except ValueError as exc:
                logger.warning(f"[library] Skipping {path.name}: {exc}")
                continue
            if definition.id in self._entries:
                logger.warning(f"[library] Duplicate session id '{definition.id}' in {path.name}; skipped")
                continue
            source = SessionSource.BUILT_IN if definition.id in self._builtin_ids else SessionSource.CUSTOM
            self._entries[definition.id] = LibraryEntry(definition, path, source)

    # ===== Queries =====

    def list_sessions(self) -> List[LibraryEntry]:
        """Built-in sessions first, then custom ones, each sorted by name."""
        return sorted(
            self._entries.values(),
            key=lambda e: (e.source is not SessionSource.BUILT_IN, e.definition.name.lower()),
        )

    def get(self, session_id: str) -> Optional[LibraryEntry]:
        return self._entries.get(session_id)

    def get_definition(self, session_id: str) -> Optional[SessionDefinition]:
        entry = self._entries.get(session_id)
        return entry.definition if entry else None

    def __contains__(self, session_id: object) -> bool:
        return session_id in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    # ===== Mutations =====

    def import_session(self, path: Union[str, Path]) -> LibraryEntry:
        """Validate and copy *path* into the library as a custom session.

        A clashing id gets a ``_1``, ``_2``, ... suffix. The file is named
        after the sanitized id and never replaces an existing file.

        Raises:
            ValueError: If the file is missing or not a valid session
        """
        definition = load_session_definition(path)
        if definition.id in self._entries:
            base_id = definition.id
            counter = 1
            new_id = f"{base_id}_{counter}"
            while new_id in self._entries:
                counter += 1
                new_id = f"{base_id}_{counter}"
            logger.info(f"[library] Session id '{base_id}' exists; importing as '{new_id}'")
            definition = replace(definition, id=new_id)

        target = self._free_path(safe_file_stem(definition.id))
        save_session_definition(definition, target)
        entry = LibraryEntry(definition, target, SessionSource.CUSTOM)
        self._entries[definition.id] = entry
        logger.info(f"[library] Imported '{definition.name}' ({definition.id})")
        return entry

    def _free_path(self, stem: str) -> Path:
        target = self.sessions_dir / f"{stem}{SESSION_SUFFIX}"
        counter = 1
        while target.exists():
            target = self.sessions_dir / f"{stem}_{counter}{SESSION_SUFFIX}"
            counter += 1
        return target

    def export_session(self, session_id: str, path: Union[str, Path]) -> Path:
        """Write a session to *path*; a directory gets the default filename."""
        entry = self._entries.get(session_id)
        if entry is None:
            raise KeyError(f"Unknown session id: {session_id}")
        target = Path(path)
        if target.is_dir():
            target = target / export_file_name(entry.definition)
        elif not target.name.endswith(SESSION_SUFFIX):
            target = target.with_name(target.name.split(".")[0] + SESSION_SUFFIX)
        save_session_definition(entry.definition, target)
        logger.info(f"[library] Exported '{entry.definition.name}' to {target}")
        return target

    def delete_session(self, session_id: str) -> bool:
        """Delete a custom session. Built-in or unknown ids return False."""
        entry = self._entries.get(session_id)
        if entry is None or not entry.can_delete:
            return False
        entry.path.unlink(missing_ok=True)
        del self._entries[session_id]
        logger.info(f"[library] Deleted session '{session_id}'")
        return True
