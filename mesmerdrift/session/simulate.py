"""
Headless session simulation on a simulated clock.

Runs a complete session in milliseconds: a fake monotonic clock is advanced
by ``step_seconds`` before each ``tick()``, so the controller sees exactly the
elapsed times a 1 Hz timer would deliver. Used by the CLI ``preview`` command
and by the scenario tests.
"""

from __future__ import annotations

import logging
import random
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, Optional

import numpy as np

from .ambient import AmbientSettings
from .controller import SessionController
from .definition import SessionDefinition
from .effects import Channel, Effect, SettingsBackedEffects
from .events import SessionEvent, SessionEventEmitter, SessionEventType
from .ramp import ramp_curve
from .tuning import EngineTuning

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EffectCall:
    """One call the controller made into the effects layer."""
    method: str
    effect: Effect
    args: tuple
    elapsed_s: float

    @property
    def elapsed_minutes(self) -> float:
        return self.elapsed_s / 60.0


class RecordingEffects(SettingsBackedEffects):
    """SettingsBackedEffects that also records every call with its session time.

    Args:
        settings: Settings struct to mutate
        clock: Returns the current session time in seconds for each record
        **kwargs: Forwarded to :class:`SettingsBackedEffects`
    """

    def __init__(
        self,
        settings: Optional[AmbientSettings] = None,
        *,
        clock: Optional[Callable[[], float]] = None,
        **kwargs: Any,
    ):
        super().__init__(settings, **kwargs)
        self.calls: list[EffectCall] = []
        self._clock = clock or (lambda: 0.0)

    def _record(self, method: str, effect: Effect, *args: Any) -> None:
        self.calls.append(EffectCall(method, Effect(effect), args, self._clock()))

    def enable_effect(self, effect: Effect, enabled: bool) -> None:
        self._record("enable_effect", effect, enabled)
        super().enable_effect(effect, enabled)

    def set_opacity(self, effect: Effect, percent: int) -> None:
        self._record("set_opacity", effect, percent)
        super().set_opacity(effect, percent)

    def set_frequency(self, effect: Effect, value: int) -> None:
        self._record("set_frequency", effect, value)
        super().set_frequency(effect, value)

    def set_intensity(self, effect: Effect, percent: int) -> None:
        self._record("set_intensity", effect, percent)
        super().set_intensity(effect, percent)

    def set_burst_active(self, effect: Effect, active: bool, magnitude: int = 0) -> None:
        self._record("set_burst_active", effect, active, magnitude)
        super().set_burst_active(effect, active, magnitude)

    def set_option(self, effect: Effect, name: str, value: Any) -> None:
        self._record("set_option", effect, name, value)
        super().set_option(effect, name, value)

    def calls_for(self, effect: Effect, method: Optional[str] = None) -> list[EffectCall]:
        effect = Effect(effect)
        return [c for c in self.calls if c.effect is effect and (method is None or c.method == method)]


class SimulatedClock:
    """Monotonic clock the simulation advances by hand."""

    def __init__(self, start: float = 0.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> float:
        self.now += seconds
        return self.now


@dataclass
class SimulationResult:
    """Everything observed while simulating one session."""
    definition: SessionDefinition
    events: list[SessionEvent] = field(default_factory=list)
    calls: list[EffectCall] = field(default_factory=list)
    settings_before: dict[str, Any] = field(default_factory=dict)
    settings_after: dict[str, Any] = field(default_factory=dict)
    ticks: int = 0
    completed: bool = False
    restore_count: int = 0

    def events_of(self, event_type: SessionEventType) -> list[SessionEvent]:
        return [e for e in self.events if e.event_type == event_type]

    def timeline(self) -> list[tuple[float, str]]:
        """(minute, description) pairs for phases, activations and bursts."""
        entries: list[tuple[float, str]] = []
        progress_minute = 0.0
        for event in self.events:
            data = event.data or {}
            if event.event_type == SessionEventType.PROGRESS:
                progress_minute = data["elapsed"] / 60.0
            elif event.event_type == SessionEventType.PHASE_CHANGED:
                entries.append((data["phase"].start_minute, f"phase {data['index']}: {data['phase'].name}"))
            elif event.event_type == SessionEventType.FEATURE_ACTIVATED:
                entries.append((
                    data["actual_minute"],
                    f"{data['effect'].value} activated (target {data['target_minute']:g}min)",
                ))
            elif event.event_type == SessionEventType.FEATURE_SKIPPED:
                entries.append((progress_minute, f"{data['effect'].value} skipped: {data['reason']}"))
            elif event.event_type == SessionEventType.BURST_START:
                entries.append((
                    progress_minute,
                    f"{data['effect'].value} burst x{data['magnitude']} for {data['duration_minutes']:.1f}min",
                ))
            elif event.event_type == SessionEventType.BURST_END:
                entries.append((progress_minute, f"{data['effect'].value} burst ended"))
            elif event.event_type == SessionEventType.SESSION_COMPLETED:
                entries.append((data["elapsed"] / 60.0, f"completed (+{data['bonus_xp']} XP)"))
            elif event.event_type == SessionEventType.SESSION_STOP:
                entries.append((data["elapsed"] / 60.0, "stopped"))
        return entries


def simulate(
    definition: SessionDefinition,
    *,
    step_seconds: float = 1.0,
    seed: Optional[int] = None,
    rng: Optional[random.Random] = None,
    tuning: Optional[EngineTuning] = None,
    settings: Optional[AmbientSettings] = None,
    unavailable: Iterable[Effect] = (),
    stop_after_minutes: Optional[float] = None,
) -> SimulationResult:
    """
    Run *definition* to completion (or until ``stop_after_minutes``).

    Args:
        definition: Session to run (validated by ``start``)
        step_seconds: Simulated seconds between ticks
        seed: Seed for a fresh ``random.Random`` (ignored when *rng* is given)
        rng: Random source to use
        tuning: Timing constants
        settings: Ambient settings to run against (a default struct if omitted)
        unavailable: Effects the simulated presentation layer cannot provide
        stop_after_minutes: Issue ``stop()`` once this much time has elapsed

    Returns:
        SimulationResult with events, effect calls and before/after settings
    """
    if step_seconds <= 0:
        raise ValueError(f"step_seconds must be positive, got {step_seconds}")

    clock = SimulatedClock()
    settings = settings if settings is not None else AmbientSettings()
    effects = RecordingEffects(settings, clock=lambda: clock.now, unavailable=unavailable)
    emitter = SessionEventEmitter()
    result = SimulationResult(definition=definition, settings_before=settings.as_dict())
    emitter.subscribe_all(result.events.append)

    controller = SessionController(
        effects,
        event_emitter=emitter,
        rng=rng or random.Random(seed),
        time_source=clock,
        tuning=tuning,
    )
    controller.start(definition)

    max_ticks = int(np.ceil(definition.duration_minutes * 60.0 / step_seconds)) + 2
    while controller.is_running and result.ticks < max_ticks:
        clock.advance(step_seconds)
        controller.tick()
        result.ticks += 1
        if (
            stop_after_minutes is not None
            and controller.is_running
            and clock.now >= stop_after_minutes * 60.0
        ):
            controller.stop()

    result.calls = list(effects.calls)
    result.settings_after = settings.as_dict()
    result.completed = bool(result.events_of(SessionEventType.SESSION_COMPLETED))
    result.restore_count = controller.restore_count
    logger.debug(f"[session] Simulated {definition.id} in {result.ticks} ticks (completed={result.completed})")
    return result


def ramp_table(
    definition: SessionDefinition,
    step_minutes: float = 5.0,
) -> tuple[np.ndarray, dict[tuple[Effect, Channel], np.ndarray]]:
    """Sample every non-constant ramp of *definition* on a minute grid.

    Returns:
        (minutes, {(effect, channel): int values}) for preview tables
    """
    duration = definition.duration_minutes
    minutes = np.arange(0.0, duration + 1e-9, step_minutes)
    if minutes.size == 0 or minutes[-1] < duration:
        minutes = np.append(minutes, duration)
    columns: dict[tuple[Effect, Channel], np.ndarray] = {}
    for settings in definition.parameters:
        if not settings.enabled and settings.effect is not Effect.MASTER:
            continue
        for channel, setting in settings.channels():
            if setting.is_constant:
                continue
            curve = ramp_curve(
                minutes,
                setting.start_minute,
                setting.resolved_end(duration),
                setting.start_value,
                setting.end_value,
            )
            columns[(settings.effect, channel)] = np.trunc(curve).astype(int)
    return minutes, columns
