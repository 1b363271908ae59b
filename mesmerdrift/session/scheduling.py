"""
Delayed-activation and burst scheduling.

Both schedulers draw all of their randomness once, when the session starts,
from an injected ``random.Random``; a seeded generator therefore reproduces a
session exactly. Each tick the controller asks them what changed at the
current elapsed time and forwards the answer to the effects layer.
"""

from __future__ import annotations

import logging
import random
from dataclasses import dataclass, field
from typing import Iterable, List, Optional

from .definition import BurstSetting, EffectSettings
from .effects import Effect
from .tuning import EngineTuning

logger = logging.getLogger(__name__)


# ===== Delayed activation =====

@dataclass
class DelayedFeature:
    """One delayed-start feature and its jittered activation instant."""
    effect: Effect
    target_minute: float
    activation_minute: float
    activated: bool = False
    skipped: bool = False
    activated_at: Optional[float] = None

    @property
    def pending(self) -> bool:
        return not self.activated and not self.skipped


class DelayedActivationScheduler:
    """Computes one jittered activation instant per delayed feature.

    Instants are drawn in the constructor and never redrawn. :meth:`due`
    returns the features whose instant has been reached and that have neither
    been activated nor skipped; the controller reports the outcome back with
    :meth:`mark_activated` or :meth:`mark_skipped` so each feature fires
    exactly once.
    """

    def __init__(
        self,
        features: Iterable[EffectSettings],
        rng: random.Random,
        jitter_minutes: float = 3.0,
    ):
        self.jitter_minutes = jitter_minutes
        self._features: dict[Effect, DelayedFeature] = {}
        for settings in features:
            if not settings.is_delayed:
                continue
            jitter = rng.uniform(-jitter_minutes, jitter_minutes) if jitter_minutes > 0 else 0.0
            instant = max(0.0, settings.start_minute + jitter)
            self._features[settings.effect] = DelayedFeature(
                effect=settings.effect,
                target_minute=settings.start_minute,
                activation_minute=instant,
            )
            logger.info(
                f"[delayed] {settings.effect.value} scheduled at {instant:.2f}min "
                f"(target {settings.start_minute:g}min, jitter {jitter:+.2f})"
            )

    @property
    def features(self) -> list[DelayedFeature]:
        return list(self._features.values())

    def get(self, effect: Effect) -> Optional[DelayedFeature]:
        return self._features.get(effect)

    def activation_instant(self, effect: Effect) -> Optional[float]:
        feature = self._features.get(effect)
        return feature.activation_minute if feature else None

    def due(self, elapsed_minutes: float) -> list[DelayedFeature]:
        return [
            f for f in self._features.values()
            if f.pending and elapsed_minutes >= f.activation_minute
        ]

    def mark_activated(self, effect: Effect, elapsed_minutes: float) -> None:
        feature = self._features[effect]
        feature.activated = True
        feature.activated_at = elapsed_minutes

    def mark_skipped(self, effect: Effect) -> None:
        self._features[effect].skipped = True


# ===== Bursts =====

def generate_burst_times(
    burst: BurstSetting,
    duration_minutes: float,
    rng: random.Random,
    tuning: Optional[EngineTuning] = None,
) -> list[float]:
    """
    Precompute burst trigger times for one feature.

    The first burst lands in ``[first_burst_min, first_burst_max]``; each
    following one is a random gap in ``[min_gap, max_gap]`` later. Generation
    stops after ``burst_count`` entries or once a time reaches
    ``duration - burst_tail_margin``.

    Args:
        burst: Burst configuration
        duration_minutes: Session length
        rng: Random source
        tuning: Timing constants (defaults when omitted)

    Returns:
        Sorted list of trigger times in minutes
    """
    tuning = tuning or EngineTuning()
    cutoff = duration_minutes - tuning.burst_tail_margin
    times: list[float] = []
    current = rng.uniform(tuning.first_burst_min, tuning.first_burst_max)
    while len(times) < burst.burst_count and current < cutoff:
        times.append(current)
        current += rng.uniform(burst.min_gap_minutes, burst.max_gap_minutes)
    return times


@dataclass
class BurstTrack:
    """Runtime state of one bursting feature."""
    effect: Effect
    magnitude: int
    times: List[float] = field(default_factory=list)
    cursor: int = 0
    active: bool = False
    ends_at: Optional[float] = None
    started_at: Optional[float] = None
    skipped: bool = False

    @property
    def next_time(self) -> Optional[float]:
        if self.cursor < len(self.times):
            return self.times[self.cursor]
        return None


@dataclass(frozen=True)
class BurstChange:
    """A burst transition the controller must forward to the effects layer."""
    effect: Effect
    active: bool
    magnitude: int
    elapsed_minutes: float
    duration_minutes: float = 0.0


class BurstScheduler:
    """Drives every intermittent feature of a session.

    Windows never overlap per feature: while a burst is active the next
    scheduled time waits, and starts on the first tick after the active burst
    has ended.
    """

    def __init__(
        self,
        features: Iterable[EffectSettings],
        duration_minutes: float,
        rng: random.Random,
        tuning: Optional[EngineTuning] = None,
    ):
        self._rng = rng
        self._tuning = tuning or EngineTuning()
        self._tracks: dict[Effect, BurstTrack] = {}
        for settings in features:
            if not settings.is_burst:
                continue
            times = generate_burst_times(settings.burst, duration_minutes, rng, self._tuning)
            self._tracks[settings.effect] = BurstTrack(
                effect=settings.effect,
                magnitude=settings.burst.per_burst,
                times=times,
            )
            logger.info(
                f"[burst] Scheduled {len(times)} {settings.effect.value} burst(s): "
                f"{', '.join(f'{t:.1f}min' for t in times) or 'none'}"
            )

    @property
    def tracks(self) -> list[BurstTrack]:
        return list(self._tracks.values())

    def get(self, effect: Effect) -> Optional[BurstTrack]:
        return self._tracks.get(effect)

    def times_for(self, effect: Effect) -> list[float]:
        track = self._tracks.get(effect)
        return list(track.times) if track else []

    def advance(self, elapsed_minutes: float) -> list[BurstChange]:
        """Return burst end/start transitions due at *elapsed_minutes*.

        The returned starts are already committed (cursor advanced, end time
        drawn); call :meth:`cancel` if the effects layer refuses one.
        """
        changes: list[BurstChange] = []
        for track in self._tracks.values():
            if track.skipped:
                continue
            if track.active and track.ends_at is not None and elapsed_minutes >= track.ends_at:
                track.active = False
                track.ends_at = None
                changes.append(BurstChange(track.effect, False, 0, elapsed_minutes))

            next_time = track.next_time
            if not track.active and next_time is not None and elapsed_minutes >= next_time:
                length = self._rng.uniform(self._tuning.burst_duration_min, self._tuning.burst_duration_max)
                track.active = True
                track.started_at = elapsed_minutes
                track.ends_at = elapsed_minutes + length
                track.cursor += 1
                changes.append(BurstChange(track.effect, True, track.magnitude, elapsed_minutes, length))
        return changes

    def cancel(self, effect: Effect) -> None:
        """Stop scheduling *effect* for the rest of the session."""
        track = self._tracks.get(effect)
        if track is None:
            return
        track.active = False
        track.ends_at = None
        track.skipped = True

    def active_tracks(self) -> list[BurstTrack]:
        return [t for t in self._tracks.values() if t.active]
