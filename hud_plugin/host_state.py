"""Read-only view of the live server state that HUD templates can reference.

The host server owns every value here. Any accessor may raise when the
underlying object is gone or not initialised yet (a session that just left, a
warhead that has not spawned, a wave manager between rounds); callers treat
every call as fallible.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Optional, Protocol, Sequence

SPECTATOR_ROLES = frozenset({"Spectator", "Overwatch"})


class WaveQueueState(str, Enum):
    IDLE = "Idle"
    WAVE_SELECTED = "WaveSelected"
    WAVE_SPAWNING = "WaveSpawning"

    @property
    def is_transient(self) -> bool:
        """True while a wave has been picked and is mid-spawn rather than counting down."""

        return self in (WaveQueueState.WAVE_SELECTED, WaveQueueState.WAVE_SPAWNING)


class WaveFaction(str, Enum):
    NTF = "ntf"
    CHAOS = "chaos"
    OTHER = "other"


@dataclass(frozen=True)
class WaveTimer:
    """Countdown for one respawn wave as reported by the host."""

    faction: WaveFaction
    time_left: float
    ready_to_spawn: bool = False
    mini_wave: bool = False


@dataclass(frozen=True)
class WarheadStatus:
    detonated: bool = False
    detonation_in_progress: bool = False
    detonation_time: float = 0.0
    lever_enabled: bool = False


class GeneratorView(Protocol):
    @property
    def engaged(self) -> bool: ...


class SessionView(Protocol):
    """One connected session; ``session_id`` is stable for the connection."""

    @property
    def session_id(self) -> int: ...

    @property
    def nickname(self) -> Optional[str]: ...

    @property
    def role(self) -> str: ...

    @property
    def spectating(self) -> Optional["SessionView"]: ...


class HostState(Protocol):
    def tick_rate(self) -> float: ...
    def player_count(self) -> int: ...
    def max_players(self) -> int: ...
    def round_duration(self) -> float: ...
    def round_in_progress(self) -> bool: ...
    def session(self, session_id: int) -> Optional[SessionView]: ...
    def sessions(self) -> Iterable[SessionView]: ...
    def generators(self) -> Sequence[GeneratorView]: ...
    def warhead(self) -> WarheadStatus: ...
    def wave_queue_state(self) -> WaveQueueState: ...
    def waves(self) -> Sequence[WaveTimer]: ...


def is_spectator_role(role: Optional[str]) -> bool:
    return str(role) in SPECTATOR_ROLES if role is not None else False
