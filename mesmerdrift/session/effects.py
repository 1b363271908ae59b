"""Effects boundary between the session engine and the presentation layer.

The engine never renders anything. It drives effects exclusively through the
five calls of :class:`EffectsInterface`; the presentation layer decides what
those calls mean on screen. :class:`SettingsBackedEffects` is the reference
implementation used headless (CLI, simulations, tests): it writes every call
into an :class:`~.ambient.AmbientSettings` instance, clamped to each
channel's native domain.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Iterable, Optional, Protocol, runtime_checkable

from .ambient import AmbientSettings
from .errors import EffectCollaboratorUnavailable

logger = logging.getLogger(__name__)


class Effect(str, Enum):
    """Effects a session can control."""
    FLASH = "flash"
    SUBLIMINAL = "subliminal"
    AUDIO_WHISPERS = "audio_whispers"
    BOUNCING_TEXT = "bouncing_text"
    PINK_FILTER = "pink_filter"
    SPIRAL = "spiral"
    BUBBLES = "bubbles"
    MANDATORY_VIDEOS = "mandatory_videos"
    LOCK_CARD = "lock_card"
    BUBBLE_COUNT = "bubble_count"
    MASTER = "master"  # ambient intensity level (master volume); has no enable flag


class Channel(str, Enum):
    """Numeric channels that can be ramped over a session."""
    OPACITY = "opacity"
    FREQUENCY = "frequency"
    INTENSITY = "intensity"


@dataclass(frozen=True)
class ChannelSpec:
    """Ambient field backing an (effect, channel) pair and its integer domain."""
    field_name: str
    minimum: int
    maximum: int

    def clamp(self, value: float) -> int:
        return max(self.minimum, min(self.maximum, int(value)))

    def contains(self, value: float) -> bool:
        return self.minimum <= value <= self.maximum


ENABLE_FIELDS: dict[Effect, str] = {
    Effect.FLASH: "flash_enabled",
    Effect.SUBLIMINAL: "subliminal_enabled",
    Effect.AUDIO_WHISPERS: "audio_whispers_enabled",
    Effect.BOUNCING_TEXT: "bouncing_text_enabled",
    Effect.PINK_FILTER: "pink_filter_enabled",
    Effect.SPIRAL: "spiral_enabled",
    Effect.BUBBLES: "bubbles_enabled",
    Effect.MANDATORY_VIDEOS: "mandatory_videos_enabled",
    Effect.LOCK_CARD: "lock_card_enabled",
    Effect.BUBBLE_COUNT: "bubble_count_enabled",
}

CHANNEL_DOMAINS: dict[tuple[Effect, Channel], ChannelSpec] = {
    (Effect.FLASH, Channel.FREQUENCY): ChannelSpec("flash_frequency", 1, 180),
    (Effect.FLASH, Channel.OPACITY): ChannelSpec("flash_opacity", 10, 100),
    (Effect.SUBLIMINAL, Channel.FREQUENCY): ChannelSpec("subliminal_frequency", 1, 30),
    (Effect.SUBLIMINAL, Channel.OPACITY): ChannelSpec("subliminal_opacity", 10, 100),
    (Effect.AUDIO_WHISPERS, Channel.INTENSITY): ChannelSpec("audio_whispers_volume", 0, 100),
    (Effect.BOUNCING_TEXT, Channel.FREQUENCY): ChannelSpec("bouncing_text_speed", 1, 10),
    (Effect.PINK_FILTER, Channel.OPACITY): ChannelSpec("pink_filter_opacity", 0, 100),
    (Effect.SPIRAL, Channel.OPACITY): ChannelSpec("spiral_opacity", 0, 50),
    (Effect.BUBBLES, Channel.FREQUENCY): ChannelSpec("bubbles_frequency", 1, 15),
    (Effect.MASTER, Channel.INTENSITY): ChannelSpec("master_volume", 0, 100),
}


def channel_spec(effect: Effect, channel: Channel) -> Optional[ChannelSpec]:
    return CHANNEL_DOMAINS.get((Effect(effect), Channel(channel)))


@dataclass(frozen=True)
class OptionSpec:
    """Fixed (non-ramped) per-session option of an effect.

    Integer options carry a domain; boolean options leave it unset.
    """
    field_name: str
    kind: type
    minimum: Optional[int] = None
    maximum: Optional[int] = None

    def contains(self, value: Any) -> bool:
        if self.kind is bool:
            return isinstance(value, bool)
        if isinstance(value, bool) or not isinstance(value, int):
            return False
        return self.minimum <= value <= self.maximum


EFFECT_OPTIONS: dict[tuple[Effect, str], OptionSpec] = {
    (Effect.FLASH, "images"): OptionSpec("flash_images", int, 1, 20),
    (Effect.FLASH, "clickable"): OptionSpec("flash_clickable", bool),
    (Effect.FLASH, "audio"): OptionSpec("flash_audio_enabled", bool),
    (Effect.SUBLIMINAL, "frames"): OptionSpec("subliminal_frames", int, 1, 10),
}


def option_spec(effect: Effect, name: str) -> Optional[OptionSpec]:
    return EFFECT_OPTIONS.get((Effect(effect), name))


def options_for(effect: Effect) -> list[str]:
    """Option names *effect* accepts, in declaration order."""
    effect = Effect(effect)
    return [name for (e, name) in EFFECT_OPTIONS if e is effect]


@runtime_checkable
class EffectsInterface(Protocol):
    """Calls the engine makes into the presentation layer.

    All calls are fire-and-forget. ``enable_effect`` and ``set_burst_active``
    may raise :class:`EffectCollaboratorUnavailable` when the effect's
    resources are missing; the engine then skips that feature for the rest of
    the session.

    Implementations may also provide ``set_option(name, option, value)`` for
    fixed per-session options (see ``EFFECT_OPTIONS``; not called when absent)
    and ``settings_restored(settings)``, which the controller calls after
    writing the snapshot back so the UI can resync.
    """

    def enable_effect(self, effect: Effect, enabled: bool) -> None: ...

    def set_opacity(self, effect: Effect, percent: int) -> None: ...

    def set_frequency(self, effect: Effect, value: int) -> None: ...

    def set_intensity(self, effect: Effect, percent: int) -> None: ...

    def set_burst_active(self, effect: Effect, active: bool, magnitude: int = 0) -> None: ...


class SettingsBackedEffects:
    """Headless effects implementation that writes into ``AmbientSettings``.

    Args:
        settings: Settings struct to mutate (shared with the controller)
        unavailable: Effects whose resources are missing (e.g. no spiral asset)
        availability: Optional callback deciding availability per effect;
            consulted in addition to *unavailable*
        burst_frequency_multiplier: Frequency written during a burst is
            ``magnitude * multiplier`` (clamped to the channel domain)
    """

    def __init__(
        self,
        settings: Optional[AmbientSettings] = None,
        *,
        unavailable: Iterable[Effect] = (),
        availability: Optional[Callable[[Effect], bool]] = None,
        burst_frequency_multiplier: int = 2,
    ):
        self.settings = settings if settings is not None else AmbientSettings()
        self._unavailable = {Effect(e) for e in unavailable}
        self._availability = availability
        self.burst_frequency_multiplier = burst_frequency_multiplier

    def is_available(self, effect: Effect) -> bool:
        if effect in self._unavailable:
            return False
        if self._availability is not None:
            return bool(self._availability(effect))
        return True

    def _require(self, effect: Effect) -> None:
        if not self.is_available(effect):
            raise EffectCollaboratorUnavailable(effect, "resource not available")

    def _write_channel(self, effect: Effect, channel: Channel, value: float) -> None:
        spec = channel_spec(effect, channel)
        if spec is None:
            logger.debug(f"[effects] {effect.value} has no {channel.value} channel; ignored")
            return
        setattr(self.settings, spec.field_name, spec.clamp(value))

    def enable_effect(self, effect: Effect, enabled: bool) -> None:
        effect = Effect(effect)
        field_name = ENABLE_FIELDS.get(effect)
        if field_name is None:
            return
        if enabled:
            self._require(effect)
        setattr(self.settings, field_name, bool(enabled))

    def set_opacity(self, effect: Effect, percent: int) -> None:
        self._write_channel(Effect(effect), Channel.OPACITY, percent)

    def set_frequency(self, effect: Effect, value: int) -> None:
        self._write_channel(Effect(effect), Channel.FREQUENCY, value)

    def set_intensity(self, effect: Effect, percent: int) -> None:
        self._write_channel(Effect(effect), Channel.INTENSITY, percent)

    def set_burst_active(self, effect: Effect, active: bool, magnitude: int = 0) -> None:
        effect = Effect(effect)
        if active:
            self._require(effect)
            self._write_channel(effect, Channel.FREQUENCY, magnitude * self.burst_frequency_multiplier)
        field_name = ENABLE_FIELDS.get(effect)
        if field_name is not None:
            setattr(self.settings, field_name, bool(active))

    def set_option(self, effect: Effect, name: str, value: Any) -> None:
        spec = option_spec(effect, name)
        if spec is None:
            logger.debug(f"[effects] {Effect(effect).value} has no '{name}' option; ignored")
            return
        setattr(self.settings, spec.field_name, spec.kind(value))

    def settings_restored(self, settings: Any) -> None:
        logger.debug("[effects] Ambient settings restored")
