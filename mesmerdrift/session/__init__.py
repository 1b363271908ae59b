"""
Session Orchestration Engine for MesmerDrift.

Runs timed, multi-phase sessions that progressively reconfigure ambient
effects (flash, subliminals, whispers, overlays, bubbles) and put the user's
own settings back afterwards.

Core Components:
- SessionDefinition: Immutable session description (phases + ParameterSet)
- SessionController: Lifecycle state machine ticked once per second
- DelayedActivationScheduler / BurstScheduler: Randomized feature timing
- Ambient snapshot/restore: Transactional settings isolation
- Drivers: QtSessionDriver (QTimer), AsyncSessionDriver (asyncio), simulate()
"""

from .ambient import (
    AMBIENT_FIELDS,
    AmbientSettings,
    AmbientSettingsSnapshot,
    restore_snapshot,
    take_snapshot,
)

from .controller import (
    RuntimeSession,
    SessionController,
    SessionState,
)

from .definition import (
    BurstSetting,
    EffectSettings,
    ParameterSet,
    Phase,
    RampSetting,
    SessionDefinition,
)

from .effects import (
    Channel,
    Effect,
    EffectsInterface,
    SettingsBackedEffects,
)

from .errors import (
    EffectCollaboratorUnavailable,
    InvalidSessionDefinitionError,
    RestoreWriteFailure,
    SessionAlreadyRunningError,
    SessionError,
)

from .events import (
    SessionEventType,
    SessionEvent,
    SessionEventEmitter,
)

from .loader import load_session_definition
from .phases import resolve_phase
from .ramp import ramp, ramp_curve
from .scheduling import BurstScheduler, DelayedActivationScheduler, generate_burst_times
from .simulate import RecordingEffects, SimulationResult, simulate
from .tuning import EngineTuning

__all__ = [
    # Definitions
    'SessionDefinition',
    'Phase',
    'ParameterSet',
    'EffectSettings',
    'RampSetting',
    'BurstSetting',
    'load_session_definition',

    # Effects boundary
    'Effect',
    'Channel',
    'EffectsInterface',
    'SettingsBackedEffects',

    # Ambient settings
    'AMBIENT_FIELDS',
    'AmbientSettings',
    'AmbientSettingsSnapshot',
    'take_snapshot',
    'restore_snapshot',

    # Timing
    'resolve_phase',
    'ramp',
    'ramp_curve',
    'generate_burst_times',
    'DelayedActivationScheduler',
    'BurstScheduler',
    'EngineTuning',

    # Event system
    'SessionEventType',
    'SessionEvent',
    'SessionEventEmitter',

    # Execution
    'SessionController',
    'SessionState',
    'RuntimeSession',
    'simulate',
    'SimulationResult',
    'RecordingEffects',

    # Errors
    'SessionError',
    'SessionAlreadyRunningError',
    'InvalidSessionDefinitionError',
    'EffectCollaboratorUnavailable',
    'RestoreWriteFailure',
]
