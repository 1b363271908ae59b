"""Ambient settings and the session snapshot/restore transaction.

``AmbientSettings`` is the user's persistent configuration as the engine sees
it: a plain struct that the host passes by reference to the effects boundary.
A session may change any field listed in ``AMBIENT_FIELDS``; everything it
changes is captured up front by :func:`take_snapshot` and written back by
:func:`restore_snapshot` when the session ends, however it ends.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, fields
from types import MappingProxyType
from typing import Any, Mapping

from .errors import RestoreWriteFailure

logger = logging.getLogger(__name__)


@dataclass
class AmbientSettings:
    """Mutable ambient configuration (the fields a session can touch)."""

    # Flash images
    flash_enabled: bool = False
    flash_frequency: int = 10       # per hour
    flash_opacity: int = 100
    flash_images: int = 2           # simultaneous images, 1-20
    flash_clickable: bool = True
    flash_audio_enabled: bool = True

    # Subliminals
    subliminal_enabled: bool = False
    subliminal_frequency: int = 5   # per minute
    subliminal_opacity: int = 80
    subliminal_frames: int = 2      # display duration in frames, 1-10

    # Audio whispers
    audio_whispers_enabled: bool = False
    audio_whispers_volume: int = 50

    # Bouncing text
    bouncing_text_enabled: bool = False
    bouncing_text_speed: int = 5

    # Overlays
    pink_filter_enabled: bool = False
    pink_filter_opacity: int = 10
    spiral_enabled: bool = False
    spiral_opacity: int = 15

    # Bubbles
    bubbles_enabled: bool = False
    bubbles_frequency: int = 5

    # Interactive features a session may switch off
    mandatory_videos_enabled: bool = False
    lock_card_enabled: bool = False
    bubble_count_enabled: bool = False

    master_volume: int = 100

    def as_dict(self) -> dict[str, Any]:
        return {name: getattr(self, name) for name in AMBIENT_FIELDS}


AMBIENT_FIELDS: tuple[str, ...] = tuple(f.name for f in fields(AmbientSettings))


@dataclass(frozen=True)
class AmbientSettingsSnapshot:
    """Write-once value copy of every ambient field.

    Attributes:
        values: Read-only mapping of field name to captured value
    """

    values: Mapping[str, Any] = field(default_factory=dict)

    def __getitem__(self, name: str) -> Any:
        return self.values[name]

    def __len__(self) -> int:
        return len(self.values)


def take_snapshot(settings: Any) -> AmbientSettingsSnapshot:
    """Copy every field in ``AMBIENT_FIELDS`` out of *settings*."""
    captured = {name: getattr(settings, name) for name in AMBIENT_FIELDS}
    logger.debug(f"[ambient] Snapshot captured ({len(captured)} fields)")
    return AmbientSettingsSnapshot(MappingProxyType(captured))


def restore_snapshot(settings: Any, snapshot: AmbientSettingsSnapshot) -> list[RestoreWriteFailure]:
    """Write every captured field back into *settings*.

    Writes are unconditional and verbatim. A field that fails to write is
    logged and reported; the remaining fields are still restored.

    Args:
        settings: Target settings object (usually an ``AmbientSettings``)
        snapshot: Snapshot produced by :func:`take_snapshot`

    Returns:
        One ``RestoreWriteFailure`` per field that could not be written
        (empty list on full success)
    """
    failures: list[RestoreWriteFailure] = []
    for name in AMBIENT_FIELDS:
        if name not in snapshot.values:
            continue
        value = snapshot.values[name]
        try:
            setattr(settings, name, value)
        except Exception as exc:
            failure = RestoreWriteFailure(name, value, exc)
            failures.append(failure)
            logger.error(f"[ambient] {failure}")
    if failures:
        logger.warning(
            f"[ambient] Restore finished with {len(failures)} failed field(s): "
            f"{', '.join(f.field_name for f in failures)}"
        )
    else:
        logger.debug(f"[ambient] Restored {len(snapshot)} fields")
    return failures
