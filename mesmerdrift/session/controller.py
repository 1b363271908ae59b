"""
Session Controller - lifecycle state machine for timed effect sessions.

The SessionController runs one SessionDefinition from start to finish:
- Validates the definition and snapshots ambient settings
- Applies immediate settings, disables delayed/burst features
- Advances a session clock once per tick (1 Hz in the GUI)
- Resolves phases, evaluates ramps, fires delayed activations and bursts
- Restores ambient settings exactly once when the session ends

Architecture:
    controller.tick() called by a driver (QTimer, asyncio task, simulation)
    → drain commands marshaled from other threads
    → elapsed ≥ duration? finalize as completed
    → phase → ramps → delayed activations → bursts → PROGRESS event
    → drain commands posted while the tick ran (e.g. stop() from a callback)

All state changes happen on the controller's owning thread. ``start``,
``stop`` and ``override`` called from any other thread, or while the
controller is busy with a tick or another command, are queued and run at the
next drain; in that case they return a ``concurrent.futures.Future``.
"""

from __future__ import annotations

import logging
import random
import threading
import time
from collections import deque
from concurrent.futures import Future
from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Any, Callable, Deque, Optional

from .ambient import AmbientSettingsSnapshot, restore_snapshot, take_snapshot
from .definition import EffectSettings, Phase, SessionDefinition
from .effects import Channel, Effect, EffectsInterface, channel_spec
from .errors import (
    EffectCollaboratorUnavailable,
    RestoreWriteFailure,
    SessionAlreadyRunningError,
    SessionError,
)
from .events import SessionEvent, SessionEventEmitter, SessionEventType
from .phases import resolve_phase
from .scheduling import BurstScheduler, DelayedActivationScheduler
from .tuning import EngineTuning

logger = logging.getLogger(__name__)


class SessionState(Enum):
    """Controller states."""
    IDLE = auto()        # No session; start() allowed
    RUNNING = auto()     # Session clock advancing
    COMPLETING = auto()  # Reached full duration, finalizing
    CANCELLING = auto()  # Stopped early, finalizing


@dataclass
class RuntimeSession:
    """Mutable state of the session being run. Owned by the controller."""
    definition: SessionDefinition
    start_time: float
    snapshot: AmbientSettingsSnapshot
    delayed: DelayedActivationScheduler
    bursts: BurstScheduler
    phase_index: int = 0
    elapsed_s: float = 0.0
    last_pushed: dict[tuple[Effect, Channel], int] = field(default_factory=dict)
    overrides: dict[tuple[Effect, Channel], int] = field(default_factory=dict)
    skipped: set[Effect] = field(default_factory=set)

    @property
    def elapsed_minutes(self) -> float:
        return self.elapsed_s / 60.0

    @property
    def duration_s(self) -> float:
        return self.definition.duration_minutes * 60.0


@dataclass
class _Command:
    name: str
    run: Callable[[], Any]
    future: Optional[Future] = None


class SessionController:
    """
    Runs timed effect sessions against an effects layer.

    Usage:
        settings = AmbientSettings()
        controller = SessionController(SettingsBackedEffects(settings))
        controller.start(definition)

        # From a 1 Hz timer on the same thread:
        controller.tick()

    Args:
        effects: Presentation-layer implementation of EffectsInterface
        settings: Ambient settings struct to snapshot/restore; defaults to
            ``effects.settings`` when the effects object exposes one
        event_emitter: Emitter for lifecycle events (a private one if omitted)
        rng: Random source for jitter and bursts (seed it for reproducibility)
        time_source: Monotonic clock in seconds (default ``time.monotonic``)
        tuning: Timing constants (default reference values)
    """

    def __init__(
        self,
        effects: EffectsInterface,
        settings: Any = None,
        *,
        event_emitter: Optional[SessionEventEmitter] = None,
        rng: Optional[random.Random] = None,
        time_source: Optional[Callable[[], float]] = None,
        tuning: Optional[EngineTuning] = None,
    ):
        if settings is None:
            settings = getattr(effects, "settings", None)
        if settings is None:
            raise ValueError("SessionController needs an ambient settings object")

        self.effects = effects
        self.settings = settings
        self.event_emitter = event_emitter or SessionEventEmitter()
        self.tuning = tuning or EngineTuning()
        ok, error = self.tuning.validate()
        if not ok:
            raise ValueError(f"Invalid engine tuning: {error}")

        self._rng = rng or random.Random()
        self._time_source = time_source or time.monotonic

        self._state = SessionState.IDLE
        self._session: Optional[RuntimeSession] = None

        # Command marshaling
        self._owner_thread = threading.get_ident()
        self._lock = threading.Lock()
        self._commands: Deque[_Command] = deque()
        self._busy = False
        # Called (on the queuing thread) after a command is queued; drivers
        # that stop ticking while idle use it to wake up.
        self.on_command_queued: Optional[Callable[[], None]] = None

        # Restore bookkeeping (inspected by hosts and tests)
        self.restore_count = 0
        self.last_restore_failures: list[RestoreWriteFailure] = []

    # ===== Read-only state =====

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def is_running(self) -> bool:
        return self._state == SessionState.RUNNING

    @property
    def current_session(self) -> Optional[SessionDefinition]:
        return self._session.definition if self._session else None

    @property
    def runtime(self) -> Optional[RuntimeSession]:
        """Live runtime state (read it, do not mutate it)."""
        return self._session

    @property
    def elapsed_time(self) -> float:
        """Seconds elapsed as of the most recent tick (0 when idle)."""
        return self._session.elapsed_s if self._session else 0.0

    @property
    def remaining_time(self) -> float:
        """Seconds left in the session (0 when idle)."""
        if not self._session:
            return 0.0
        return max(0.0, self._session.duration_s - self._session.elapsed_s)

    @property
    def progress_percent(self) -> float:
        if not self._session:
            return 0.0
        return min(100.0, self._session.elapsed_s / self._session.duration_s * 100.0)

    @property
    def current_phase_index(self) -> int:
        return self._session.phase_index if self._session else -1

    @property
    def current_phase(self) -> Optional[Phase]:
        if not self._session:
            return None
        return self._session.definition.get_phase(self._session.phase_index)

    @property
    def ambient_snapshot(self) -> Optional[AmbientSettingsSnapshot]:
        return self._session.snapshot if self._session else None

    # ===== Thread affinity =====

    def bind_to_current_thread(self) -> None:
        """Make the calling thread the tick context (drivers call this once)."""
        self._owner_thread = threading.get_ident()

    def _on_owner_thread(self) -> bool:
        return threading.get_ident() == self._owner_thread

    def _dispatch(self, name: str, run: Callable[[], Any]) -> Any:
        if self._on_owner_thread() and not self._busy:
            result = self._run_command(_Command(name, run))
            self._drain_commands()
            return result
        future: Future = Future()
        with self._lock:
            self._commands.append(_Command(name, run, future))
        logger.debug(f"[session] Queued {name} for next tick")
        if self.on_command_queued is not None:
            self.on_command_queued()
        return future

    def _run_command(self, command: _Command) -> Any:
        self._busy = True
        try:
            result = command.run()
        except Exception as exc:
            if command.future is None:
                raise
            logger.warning(f"[session] Queued {command.name} failed: {exc}")
            command.future.set_exception(exc)
            return None
        finally:
            self._busy = False
        if command.future is not None:
            command.future.set_result(result)
        return result

    def _drain_commands(self) -> None:
        while True:
            with self._lock:
                if not self._commands:
                    return
                command = self._commands.popleft()
            if command.future is not None and not command.future.set_running_or_notify_cancel():
                logger.debug(f"[session] Queued {command.name} was cancelled; skipped")
                continue
            self._run_command(command)

    def pending_commands(self) -> int:
        with self._lock:
            return len(self._commands)

    # ===== Commands =====

    def start(self, definition: SessionDefinition) -> Optional[Future]:
        """Start *definition*.

        Raises:
            SessionAlreadyRunningError: If a session is active
            InvalidSessionDefinitionError: If the definition is malformed
                (raised before any state is touched)

        Returns:
            ``None`` when executed immediately, or a Future when the call was
            marshaled to the tick context (the Future carries the exception).
            A marshaled start resolves on the next tick, so whoever drives the
            controller must keep ticking while idle or wake on
            ``on_command_queued``.
        """
        return self._dispatch("start", lambda: self._do_start(definition))

    def stop(self, completed: bool = False) -> Optional[Future]:
        """Stop the running session; a no-op when idle.

        Args:
            completed: Finalize as a natural completion (awards bonus XP)
        """
        return self._dispatch("stop", lambda: self._do_stop(completed))

    def override(self, effect: Effect, channel: Channel, value: int) -> Optional[Future]:
        """Pin one channel to *value* for the rest of the running session."""
        return self._dispatch("override", lambda: self._do_override(effect, channel, value))

    def shutdown(self) -> None:
        """Stop any running session and drop queued commands (host teardown)."""
        with self._lock:
            dropped = list(self._commands)
            self._commands.clear()
        for command in dropped:
            if command.future is not None:
                command.future.cancel()
        if self._state != SessionState.IDLE and self._on_owner_thread() and not self._busy:
            self._run_command(_Command("stop", lambda: self._do_stop(False)))

    def tick(self, now: Optional[float] = None) -> None:
        """Advance the session clock.

        Args:
            now: Clock reading in seconds (same timebase as ``time_source``);
                read from ``time_source`` when omitted
        """
        if not self._on_owner_thread():
            raise RuntimeError("tick() must be called from the controller's thread")
        if self._busy:
            logger.debug("[tick] Re-entrant tick ignored")
            return

        self._drain_commands()
        if self._state == SessionState.RUNNING:
            self._busy = True
            try:
                self._step(self._time_source() if now is None else now)
            finally:
                self._busy = False
        self._drain_commands()

    # ===== Lifecycle =====

    def _do_start(self, definition: SessionDefinition) -> None:
        if self._state != SessionState.IDLE:
            running_id = self._session.definition.id if self._session else None
            logger.warning(f"[session] Cannot start {definition.id!r}: already {self._state.name}")
            raise SessionAlreadyRunningError(running_id)

        definition.ensure_valid()

        snapshot = take_snapshot(self.settings)
        params = list(definition.parameters)
        delayed = DelayedActivationScheduler(params, self._rng, self.tuning.jitter_minutes)
        bursts = BurstScheduler(params, definition.duration_minutes, self._rng, self.tuning)

        session = RuntimeSession(
            definition=definition,
            start_time=self._time_source(),
            snapshot=snapshot,
            delayed=delayed,
            bursts=bursts,
        )
        self._session = session
        self._state = SessionState.RUNNING
        self.last_restore_failures = []

        logger.info(
            f"[session] Starting session: {definition.name} "
            f"({definition.duration_minutes:g}min, {len(definition.phases)} phases)"
        )
        self._apply_initial_settings(session)

        self.event_emitter.emit(SessionEvent(
            SessionEventType.SESSION_START,
            data={
                "session_id": definition.id,
                "name": definition.name,
                "duration_minutes": definition.duration_minutes,
            },
        ))
        if definition.phases:
            first = definition.phases[0]
            logger.info(f"[phase] {first.name}")
            self.event_emitter.emit(SessionEvent(
                SessionEventType.PHASE_CHANGED,
                data={"phase": first, "index": 0},
            ))

    def _do_stop(self, completed: bool) -> None:
        if self._state == SessionState.IDLE or self._session is None:
            return
        self._finalize(completed=completed, elapsed_s=self._session.elapsed_s)

    def _do_override(self, effect: Effect, channel: Channel, value: int) -> None:
        session = self._session
        if self._state != SessionState.RUNNING or session is None:
            raise SessionError("No session running")
        effect, channel = Effect(effect), Channel(channel)
        spec = channel_spec(effect, channel)
        if spec is None:
            raise ValueError(f"{effect.value} has no {channel.value} channel")
        if not spec.contains(value):
            raise ValueError(f"{effect.value}.{channel.value}={value} outside [{spec.minimum}, {spec.maximum}]")
        key = (effect, channel)
        value = int(value)
        session.overrides[key] = value
        session.last_pushed[key] = value
        logger.info(f"[session] Override {effect.value}.{channel.value}={value} for rest of session")
        self._send_channel(effect, channel, value)

    def _finalize(self, *, completed: bool, elapsed_s: float) -> None:
        session = self._session
        if session is None:
            self._state = SessionState.IDLE
            return

        self._state = SessionState.COMPLETING if completed else SessionState.CANCELLING
        definition = session.definition
        try:
            for track in session.bursts.active_tracks():
                session.bursts.cancel(track.effect)
                self._call_effect(track.effect, "set_burst_active", track.effect, False, 0)
        finally:
            self.last_restore_failures = restore_snapshot(self.settings, session.snapshot)
            self.restore_count += 1
            hook = getattr(self.effects, "settings_restored", None)
            if callable(hook):
                try:
                    hook(self.settings)
                except Exception as exc:
                    logger.error(f"[session] settings_restored hook failed: {exc}", exc_info=True)
            self._session = None
            self._state = SessionState.IDLE

        if completed:
            logger.info(f"[session] Session completed: {definition.name}, XP: {definition.bonus_xp}")
            self.event_emitter.emit(SessionEvent(
                SessionEventType.SESSION_COMPLETED,
                data={"definition": definition, "elapsed": elapsed_s, "bonus_xp": definition.bonus_xp},
            ))
        else:
            logger.info(f"[session] Session stopped early at {elapsed_s / 60.0:.1f}min: {definition.name}")
            self.event_emitter.emit(SessionEvent(
                SessionEventType.SESSION_STOP,
                data={"session_id": definition.id, "elapsed": elapsed_s},
            ))

    # ===== Tick pipeline =====

    def _step(self, now: float) -> None:
        session = self._session
        if session is None:
            return
        elapsed_s = max(0.0, now - session.start_time)
        session.elapsed_s = elapsed_s
        elapsed_min = elapsed_s / 60.0

        if elapsed_min >= session.definition.duration_minutes:
            self._finalize(completed=True, elapsed_s=elapsed_s)
            return

        self._update_phase(session, elapsed_min)
        for settings in session.definition.parameters:
            if settings.effect in session.skipped:
                continue
            if settings.enabled or settings.effect is Effect.MASTER:
                self._push_channels(session, settings, elapsed_min)
        self._update_delayed(session, elapsed_min)
        self._update_bursts(session, elapsed_min)

        remaining = max(0.0, session.duration_s - elapsed_s)
        percent = min(100.0, elapsed_s / session.duration_s * 100.0)
        logger.debug(f"[tick] [session] {elapsed_min:.2f}min ({percent:.1f}%)")
        self.event_emitter.emit(SessionEvent(
            SessionEventType.PROGRESS,
            data={"elapsed": elapsed_s, "remaining": remaining, "percent": percent},
        ))

    def _update_phase(self, session: RuntimeSession, elapsed_min: float) -> None:
        phases = session.definition.phases
        if not phases:
            return
        index = resolve_phase(phases, elapsed_min)
        if index <= session.phase_index:
            return
        session.phase_index = index
        phase = phases[index]
        logger.info(f"[phase] {phase.name} at {elapsed_min:.1f}min")
        self.event_emitter.emit(SessionEvent(
            SessionEventType.PHASE_CHANGED,
            data={"phase": phase, "index": index},
        ))

    def _update_delayed(self, session: RuntimeSession, elapsed_min: float) -> None:
        for feature in session.delayed.due(elapsed_min):
            if self._enable(session, feature.effect):
                session.delayed.mark_activated(feature.effect, elapsed_min)
                logger.info(
                    f"[delayed] {feature.effect.value} activated at {elapsed_min:.2f}min "
                    f"(target {feature.target_minute:g}min, scheduled {feature.activation_minute:.2f}min)"
                )
                self.event_emitter.emit(SessionEvent(
                    SessionEventType.FEATURE_ACTIVATED,
                    data={
                        "effect": feature.effect,
                        "target_minute": feature.target_minute,
                        "actual_minute": elapsed_min,
                    },
                ))
            else:
                session.delayed.mark_skipped(feature.effect)

    def _update_bursts(self, session: RuntimeSession, elapsed_min: float) -> None:
        for change in session.bursts.advance(elapsed_min):
            if change.active:
                try:
                    self.effects.set_burst_active(change.effect, True, change.magnitude)
                except EffectCollaboratorUnavailable as exc:
                    session.bursts.cancel(change.effect)
                    self._mark_skipped(session, change.effect, str(exc))
                    continue
                except Exception as exc:
                    logger.error(f"[burst] {change.effect.value} start failed: {exc}", exc_info=True)
                    continue
                logger.info(
                    f"[burst] {change.effect.value} burst started at {elapsed_min:.1f}min, "
                    f"duration: {change.duration_minutes:.1f}min"
                )
                self.event_emitter.emit(SessionEvent(
                    SessionEventType.BURST_START,
                    data={
                        "effect": change.effect,
                        "magnitude": change.magnitude,
                        "duration_minutes": change.duration_minutes,
                    },
                ))
            else:
                self._call_effect(change.effect, "set_burst_active", change.effect, False, 0)
                logger.info(f"[burst] {change.effect.value} burst ended at {elapsed_min:.1f}min")
                self.event_emitter.emit(SessionEvent(
                    SessionEventType.BURST_END,
                    data={"effect": change.effect},
                ))

    # ===== Effects helpers =====

    def _apply_initial_settings(self, session: RuntimeSession) -> None:
        for settings in session.definition.parameters:
            effect = settings.effect
            if effect is Effect.MASTER:
                self._push_channels(session, settings, 0.0)
                continue
            if settings.is_immediate:
                if self._enable(session, effect):
                    self._push_channels(session, settings, 0.0)
                    self._apply_options(settings)
                continue
            # Disabled, delayed and burst features all start switched off.
            self._call_effect(effect, "enable_effect", effect, False)
            if settings.enabled:
                self._push_channels(session, settings, 0.0)
                self._apply_options(settings)

    def _apply_options(self, settings: EffectSettings) -> None:
        if not settings.options:
            return
        set_option = getattr(self.effects, "set_option", None)
        if not callable(set_option):
            logger.debug(f"[session] Effects layer has no set_option; {settings.effect.value} options ignored")
            return
        for name, value in settings.options.items():
            self._call_effect(settings.effect, "set_option", settings.effect, name, value)

    def _push_channels(self, session: RuntimeSession, settings: EffectSettings, elapsed_min: float) -> None:
        duration = session.definition.duration_minutes
        for channel, setting in settings.channels():
            key = (settings.effect, channel)
            if key in session.overrides:
                continue
            value = int(setting.value_at(elapsed_min, duration))
            if session.last_pushed.get(key) == value:
                continue
            previous = session.last_pushed.get(key)
            session.last_pushed[key] = value
            if previous is not None:
                logger.debug(f"[tick] [ramp] {settings.effect.value}.{channel.value}: {previous} -> {value}")
            self._send_channel(settings.effect, channel, value)

    def _send_channel(self, effect: Effect, channel: Channel, value: int) -> None:
        method = {
            Channel.OPACITY: "set_opacity",
            Channel.FREQUENCY: "set_frequency",
            Channel.INTENSITY: "set_intensity",
        }[channel]
        self._call_effect(effect, method, effect, value)

    def _enable(self, session: RuntimeSession, effect: Effect) -> bool:
        try:
            self.effects.enable_effect(effect, True)
            return True
        except EffectCollaboratorUnavailable as exc:
            self._mark_skipped(session, effect, str(exc))
        except Exception as exc:
            logger.error(f"[session] Enabling {effect.value} failed: {exc}", exc_info=True)
            self._mark_skipped(session, effect, str(exc))
        return False

    def _mark_skipped(self, session: RuntimeSession, effect: Effect, reason: str) -> None:
        session.skipped.add(effect)
        logger.info(f"[session] Skipping {effect.value} for this session: {reason}")
        self.event_emitter.emit(SessionEvent(
            SessionEventType.FEATURE_SKIPPED,
            data={"effect": effect, "reason": reason},
        ))

    def _call_effect(self, effect: Effect, method: str, *args: Any) -> None:
        try:
            getattr(self.effects, method)(*args)
        except EffectCollaboratorUnavailable as exc:
            logger.debug(f"[session] {method}({effect.value}) unavailable: {exc}")
        except Exception as exc:
            logger.error(f"[session] {method}({effect.value}) failed: {exc}", exc_info=True)
