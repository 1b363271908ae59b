"""Session definition loader helpers.

Definitions live in ``*.session.json`` files. Loading parses and validates;
every failure surfaces as ``ValueError`` (``InvalidSessionDefinitionError``
for structural problems).
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, Union

from .definition import SessionDefinition
from .errors import InvalidSessionDefinitionError

MAX_SIZE_BYTES = 1_000_000
SESSION_SUFFIX = ".session.json"


def _read_json_object(p: Path) -> Dict[str, Any]:
    if not p.is_file():
        raise ValueError(f"Session file not found: {p}")
    if p.stat().st_size > MAX_SIZE_BYTES:
        raise ValueError("Session file too large (>1MB)")
    try:
        # utf-8-sig so files saved with a BOM still parse
        raw = p.read_text(encoding="utf-8-sig")
        if raw.startswith("\ufeff"):
            raw = raw.lstrip("\ufeff")
        data = json.loads(raw)
    except json.JSONDecodeError as e:
        raise ValueError(f"Invalid JSON: {e.msg} (line {e.lineno})") from None
    if not isinstance(data, dict):
        raise ValueError("Top-level JSON must be an object")
    return data


def session_from_dict(data: Dict[str, Any]) -> SessionDefinition:
    """Build and validate a definition from a parsed JSON object."""
    if not isinstance(data, dict):
        raise InvalidSessionDefinitionError("Session must be a JSON object")
    try:
        definition = SessionDefinition.from_dict(data)
    except (TypeError, AttributeError) as exc:
        raise InvalidSessionDefinitionError(f"Malformed session: {exc}") from None
    definition.ensure_valid()
    return definition


def load_session_definition(path: Union[str, Path]) -> SessionDefinition:
    return session_from_dict(_read_json_object(Path(path)))


def load_session_definition_from_json_str(raw: str) -> SessionDefinition:
    try:
        data = json.loads(raw.lstrip("\ufeff"))
    except json.JSONDecodeError as e:
        raise ValueError(f"Invalid JSON: {e.msg} (line {e.lineno})") from None
    return session_from_dict(data)


def save_session_definition(definition: SessionDefinition, path: Union[str, Path]) -> None:
    p = Path(path)
    p.write_text(json.dumps(definition.to_dict(), indent=2), encoding="utf-8")
