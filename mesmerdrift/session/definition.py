"""
Session Definition Models - what a timed session is made of.

A SessionDefinition is an immutable description of one session:
- Total duration and an ordered phase timeline (narration only)
- A ParameterSet with one EffectSettings record per controlled effect
- Ramped channels (opacity / frequency / intensity) with a time window
- Delayed starts and burst (intermittent) configuration

Definitions are normally loaded from ``*.session.json`` files by
``session.loader``; the engine only consumes them.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Dict, Iterator, List, Mapping, Optional, Union

from .effects import Channel, Effect, channel_spec, option_spec, options_for
from .errors import InvalidSessionDefinitionError
from .ramp import ramp


@dataclass(frozen=True)
class Phase:
    """Named sub-interval of a session timeline, starting at ``start_minute``."""
    start_minute: float
    name: str
    description: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {"start_minute": self.start_minute, "name": self.name, "description": self.description}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> Phase:
        return cls(
            start_minute=float(data.get("start_minute", 0)),
            name=str(data.get("name", "")),
            description=str(data.get("description", "")),
        )


@dataclass(frozen=True)
class RampSetting:
    """
    Linear ramp of one numeric channel.

    Attributes:
        start_value: Value before and at ``start_minute``
        end_value: Value at and after the end of the window
        start_minute: Window start (default: session start)
        end_minute: Window end; ``None`` means the session's total duration
    """
    start_value: float
    end_value: float
    start_minute: float = 0.0
    end_minute: Optional[float] = None

    @classmethod
    def constant(cls, value: float) -> RampSetting:
        return cls(start_value=value, end_value=value)

    @property
    def is_constant(self) -> bool:
        return self.start_value == self.end_value

    def resolved_end(self, duration_minutes: float) -> float:
        return duration_minutes if self.end_minute is None else self.end_minute

    def value_at(self, elapsed_minutes: float, duration_minutes: float) -> float:
        end = self.resolved_end(duration_minutes)
        if end <= self.start_minute:
            return float(self.end_value)
        return ramp(elapsed_minutes, self.start_minute, end, self.start_value, self.end_value)

    def to_dict(self) -> Union[float, Dict[str, Any]]:
        if self.is_constant and self.start_minute == 0 and self.end_minute is None:
            return self.start_value
        data: Dict[str, Any] = {"start": self.start_value, "end": self.end_value}
        if self.start_minute:
            data["from_minute"] = self.start_minute
        if self.end_minute is not None:
            data["to_minute"] = self.end_minute
        return data

    @classmethod
    def from_dict(cls, data: Union[int, float, Dict[str, Any]]) -> RampSetting:
        """Accept either a bare number (constant) or a ramp mapping."""
        if isinstance(data, (int, float)) and not isinstance(data, bool):
            return cls.constant(float(data))
        if not isinstance(data, dict):
            raise InvalidSessionDefinitionError(f"Ramp must be a number or an object, got {data!r}")
        start = data.get("start", data.get("value"))
        if start is None:
            raise InvalidSessionDefinitionError("Ramp object requires 'start'")
        end = data.get("end", start)
        to_minute = data.get("to_minute")
        return cls(
            start_value=float(start),
            end_value=float(end),
            start_minute=float(data.get("from_minute", 0.0)),
            end_minute=None if to_minute is None else float(to_minute),
        )


@dataclass(frozen=True)
class BurstSetting:
    """Intermittent activation: up to ``burst_count`` bursts separated by random gaps."""
    burst_count: int
    per_burst: int
    min_gap_minutes: float
    max_gap_minutes: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "count": self.burst_count,
            "per_burst": self.per_burst,
            "min_gap": self.min_gap_minutes,
            "max_gap": self.max_gap_minutes,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> BurstSetting:
        return cls(
            burst_count=int(data.get("count", 0)),
            per_burst=int(data.get("per_burst", 5)),
            min_gap_minutes=float(data.get("min_gap", 5)),
            max_gap_minutes=float(data.get("max_gap", 8)),
        )


@dataclass(frozen=True)
class EffectSettings:
    """Session configuration of a single effect."""
    effect: Effect
    enabled: bool = False
    start_minute: float = 0.0
    opacity: Optional[RampSetting] = None
    frequency: Optional[RampSetting] = None
    intensity: Optional[RampSetting] = None
    burst: Optional[BurstSetting] = None
    options: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        object.__setattr__(self, "options", MappingProxyType(dict(self.options)))

    @property
    def is_delayed(self) -> bool:
        return self.enabled and self.burst is None and self.start_minute > 0

    @property
    def is_burst(self) -> bool:
        return self.enabled and self.burst is not None

    @property
    def is_immediate(self) -> bool:
        return self.enabled and not self.is_delayed and not self.is_burst

    def channels(self) -> Iterator[tuple[Channel, RampSetting]]:
        """Yield the configured ramped channels."""
        for channel in Channel:
            setting = getattr(self, channel.value)
            if setting is not None:
                yield channel, setting

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"enabled": self.enabled}
        if self.start_minute:
            data["start_minute"] = self.start_minute
        for channel, setting in self.channels():
            data[channel.value] = setting.to_dict()
        data.update(self.options)
        if self.burst is not None:
            data["burst"] = self.burst.to_dict()
        return data

    @classmethod
    def from_dict(cls, effect: Effect, data: Dict[str, Any]) -> EffectSettings:
        if not isinstance(data, dict):
            raise InvalidSessionDefinitionError(f"effects.{effect.value} must be an object")
        kwargs: Dict[str, Any] = {}
        for channel in Channel:
            if channel.value in data and data[channel.value] is not None:
                kwargs[channel.value] = RampSetting.from_dict(data[channel.value])
        options = {name: data[name] for name in options_for(effect) if data.get(name) is not None}
        burst = data.get("burst")
        return cls(
            effect=effect,
            enabled=bool(data.get("enabled", effect is Effect.MASTER)),
            start_minute=float(data.get("start_minute", 0.0)),
            burst=BurstSetting.from_dict(burst) if isinstance(burst, dict) else None,
            options=options,
            **kwargs,
        )


@dataclass(frozen=True)
class ParameterSet:
    """Every controllable effect of a session, keyed by :class:`Effect`."""
    effects: Mapping[Effect, EffectSettings] = field(default_factory=dict)

    def __post_init__(self):
        object.__setattr__(self, "effects", MappingProxyType(dict(self.effects)))

    @classmethod
    def of(cls, *settings: EffectSettings) -> ParameterSet:
        return cls({s.effect: s for s in settings})

    def get(self, effect: Effect) -> EffectSettings:
        """Settings for *effect*; effects not listed are disabled."""
        effect = Effect(effect)
        return self.effects.get(effect) or EffectSettings(effect=effect)

    def __iter__(self) -> Iterator[EffectSettings]:
        for effect in Effect:
            yield self.get(effect)

    def to_dict(self) -> Dict[str, Any]:
        return {effect.value: s.to_dict() for effect, s in self.effects.items()}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> ParameterSet:
        parsed: Dict[Effect, EffectSettings] = {}
        for key, value in (data or {}).items():
            try:
                effect = Effect(key)
            except ValueError:
                raise InvalidSessionDefinitionError(f"Unknown effect '{key}'") from None
            parsed[effect] = EffectSettings.from_dict(effect, value)
        return cls(parsed)


@dataclass(frozen=True)
class SessionDefinition:
    """
    Complete, immutable session description.

    Attributes:
        id: Stable identifier (unique within a library)
        name: Display name
        duration_minutes: Total length (> 0)
        phases: Ordered timeline, first phase at minute 0
        parameters: Per-effect configuration
        bonus_xp: Reward carried unmodified into the completion event
        icon: Display icon (informational)
        description: Spoiler-free description (informational)
        available: Whether the UI offers this session (informational)
    """
    id: str
    name: str
    duration_minutes: float
    phases: tuple[Phase, ...] = ()
    parameters: ParameterSet = field(default_factory=ParameterSet)
    bonus_xp: int = 0
    icon: str = ""
    description: str = ""
    available: bool = True

    def __post_init__(self):
        object.__setattr__(self, "phases", tuple(self.phases))

    def validate(self) -> tuple[bool, str]:
        """
        Check every structural invariant.

        Returns:
            (is_valid, error_message)
        """
        duration = self.duration_minutes
        if not duration or not math.isfinite(duration) or duration <= 0:
            return False, f"duration_minutes must be a positive finite number, got {duration}"

        previous: Optional[float] = None
        for i, phase in enumerate(self.phases):
            if not math.isfinite(phase.start_minute):
                return False, f"Phase '{phase.name}' start_minute must be a finite number, got {phase.start_minute}"
            if i == 0 and phase.start_minute != 0:
                return False, f"First phase must start at minute 0, got {phase.start_minute}"
            if previous is not None and phase.start_minute <= previous:
                return False, (
                    f"Phases must be strictly increasing: phase {i} '{phase.name}' starts at "
                    f"{phase.start_minute} after {previous}"
                )
            if phase.start_minute > duration:
                return False, f"Phase '{phase.name}' starts at {phase.start_minute} beyond duration {duration}"
            previous = phase.start_minute

        for settings in self.parameters.effects.values():
            ok, error = _validate_effect(settings, duration)
            if not ok:
                return False, error

        return True, ""

    def ensure_valid(self) -> None:
        """Raise :class:`InvalidSessionDefinitionError` if :meth:`validate` fails."""
        ok, error = self.validate()
        if not ok:
            raise InvalidSessionDefinitionError(f"Invalid session '{self.id or self.name}': {error}")

    def get_phase(self, index: int) -> Optional[Phase]:
        if 0 <= index < len(self.phases):
            return self.phases[index]
        return None

    # ----- Human readable summaries -----

    def describe_timeline(self) -> str:
        """One ``MM:00 - Name`` line per phase."""
        return "\n".join(f"{int(p.start_minute):02d}:00 - {p.name}" for p in self.phases)

    def describe_effects(self) -> str:
        """Short per-effect summary of what the session will do."""
        lines: List[str] = []
        for settings in self.parameters:
            if settings.effect is Effect.MASTER:
                if settings.intensity is not None:
                    lines.append(f"master: intensity {_describe_ramp(settings.intensity, self.duration_minutes)}")
                continue
            if not settings.enabled:
                continue
            parts: List[str] = []
            if settings.is_delayed:
                parts.append(f"starts ~{settings.start_minute:g}min")
            if settings.burst is not None:
                b = settings.burst
                parts.append(
                    f"{b.burst_count} bursts x{b.per_burst}, {b.min_gap_minutes:g}-{b.max_gap_minutes:g}min gaps"
                )
            for channel, setting in settings.channels():
                parts.append(f"{channel.value} {_describe_ramp(setting, self.duration_minutes)}")
            for option, value in settings.options.items():
                parts.append(f"{option} {str(value).lower() if isinstance(value, bool) else value}")
            lines.append(f"{settings.effect.value}: {', '.join(parts) if parts else 'on'}")
        return "\n".join(lines) if lines else "None"

    # ----- Serialization -----

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to JSON-compatible dict."""
        return {
            "id": self.id,
            "name": self.name,
            "icon": self.icon,
            "description": self.description,
            "duration_minutes": self.duration_minutes,
            "available": self.available,
            "bonus_xp": self.bonus_xp,
            "phases": [p.to_dict() for p in self.phases],
            "effects": self.parameters.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> SessionDefinition:
        """Deserialize from dict (validation is a separate step)."""
        try:
            duration = float(data.get("duration_minutes", 0))
            bonus_xp = int(data.get("bonus_xp", 0))
        except (TypeError, ValueError) as exc:
            raise InvalidSessionDefinitionError(f"Invalid numeric field: {exc}") from None
        phases = data.get("phases") or []
        if not isinstance(phases, list):
            raise InvalidSessionDefinitionError("phases must be a list")
        return cls(
            id=str(data.get("id", "")),
            name=str(data.get("name", "")),
            icon=str(data.get("icon", "")),
            description=str(data.get("description", "")),
            duration_minutes=duration,
            available=bool(data.get("available", True)),
            bonus_xp=bonus_xp,
            phases=tuple(Phase.from_dict(p) for p in phases),
            parameters=ParameterSet.from_dict(data.get("effects") or {}),
        )


def _describe_ramp(setting: RampSetting, duration: float) -> str:
    if setting.is_constant:
        return f"{setting.start_value:g}"
    end = setting.resolved_end(duration)
    return f"{setting.start_value:g}->{setting.end_value:g} ({setting.start_minute:g}-{end:g}min)"


def _validate_effect(settings: EffectSettings, duration: float) -> tuple[bool, str]:
    name = settings.effect.value
    if not math.isfinite(settings.start_minute) or not 0 <= settings.start_minute <= duration:
        return False, f"{name}.start_minute must be within [0, {duration}], got {settings.start_minute}"

    for channel, setting in settings.channels():
        spec = channel_spec(settings.effect, channel)
        if spec is None:
            return False, f"{name} has no '{channel.value}' channel"
        end = setting.resolved_end(duration)
        if not setting.start_minute < end:
            return False, f"{name}.{channel.value} ramp window [{setting.start_minute}, {end}] is empty"
        if end > duration:
            return False, f"{name}.{channel.value} ramp ends at {end} beyond duration {duration}"
        for value in (setting.start_value, setting.end_value):
            if not spec.contains(value):
                return False, (
                    f"{name}.{channel.value} value {value:g} outside [{spec.minimum}, {spec.maximum}]"
                )

    for option, value in settings.options.items():
        spec = option_spec(settings.effect, option)
        if spec is None:
            return False, f"{name} has no '{option}' option"
        if not spec.contains(value):
            if spec.kind is bool:
                return False, f"{name}.{option} must be true or false, got {value!r}"
            return False, f"{name}.{option} value {value!r} outside [{spec.minimum}, {spec.maximum}]"

    burst = settings.burst
    if burst is not None:
        if burst.burst_count < 0:
            return False, f"{name}.burst.count must be non-negative, got {burst.burst_count}"
        if burst.per_burst < 0:
            return False, f"{name}.burst.per_burst must be non-negative, got {burst.per_burst}"
        if not (math.isfinite(burst.min_gap_minutes) and math.isfinite(burst.max_gap_minutes)):
            return False, (
                f"{name}.burst gaps must be finite numbers, got [{burst.min_gap_minutes}, {burst.max_gap_minutes}]"
            )
        if burst.min_gap_minutes < 0:
            return False, f"{name}.burst.min_gap must be non-negative, got {burst.min_gap_minutes}"
        if burst.min_gap_minutes > burst.max_gap_minutes:
            return False, (
                f"{name}.burst.min_gap ({burst.min_gap_minutes}) cannot exceed max_gap ({burst.max_gap_minutes})"
            )
    return True, ""
