"""Shared fakes for the host state and display primitive."""
from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Set

import pytest

from hud_plugin.host_state import WarheadStatus, WaveQueueState, WaveTimer


@dataclass
class FakeSession:
    session_id: int
    nickname: Optional[str] = "Player"
    role: str = "ClassD"
    spectating: Optional["FakeSession"] = None


@dataclass
class FakeGenerator:
    engaged: bool = False


class FakeHostState:
    """In-memory host state; ``fail(name)`` makes that accessor raise."""

    def __init__(self) -> None:
        self.tps = 60.0
        self.players = 0
        self.capacity = 20
        self.duration = 0.0
        self.in_progress = True
        self.generator_list: List[FakeGenerator] = []
        self.warhead_status: Optional[WarheadStatus] = WarheadStatus()
        self.queue_state: Any = WaveQueueState.IDLE
        self.wave_list: List[WaveTimer] = []
        self._sessions: Dict[int, FakeSession] = {}
        self._failing: Set[str] = set()

    def fail(self, *names: str) -> None:
        self._failing.update(names)

    def _check(self, name: str) -> None:
        if name in self._failing:
            raise RuntimeError(f"{name} unavailable")

    def add_session(self, session_id: int, nickname: Optional[str] = "Player", role: str = "ClassD") -> FakeSession:
        session = FakeSession(session_id, nickname, role)
        self._sessions[session_id] = session
        self.players = len(self._sessions)
        return session

    def drop_session(self, session_id: int) -> None:
        self._sessions.pop(session_id, None)
        self.players = len(self._sessions)

    # HostState -----------------------------------------------------------

    def tick_rate(self) -> float:
        self._check("tick_rate")
        return self.tps

    def player_count(self) -> int:
        self._check("player_count")
        return self.players

    def max_players(self) -> int:
        self._check("max_players")
        return self.capacity

    def round_duration(self) -> float:
        self._check("round_duration")
        return self.duration

    def round_in_progress(self) -> bool:
        self._check("round_in_progress")
        return self.in_progress

    def session(self, session_id: int) -> Optional[FakeSession]:
        self._check("session")
        return self._sessions.get(session_id)

    def sessions(self) -> List[FakeSession]:
        self._check("sessions")
        return list(self._sessions.values())

    def generators(self) -> List[FakeGenerator]:
        self._check("generators")
        return list(self.generator_list)

    def warhead(self) -> Optional[WarheadStatus]:
        self._check("warhead")
        return self.warhead_status

    def wave_queue_state(self) -> Any:
        self._check("wave_queue_state")
        return self.queue_state

    def waves(self) -> List[WaveTimer]:
        self._check("waves")
        return list(self.wave_list)


@dataclass
class FakeHandle:
    session_id: int
    label_key: str
    provider: Any = field(repr=False)


class FakeDisplay:
    """Records instance creation/removal the way the host display would."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self.created: List[FakeHandle] = []
        self.removed: List[FakeHandle] = []
        self.unavailable: Set[int] = set()
        self.fail_on_label: Optional[str] = None
        self.fail_remove = False

    def create_instance(self, session_id: int, label: Any, provider: Any) -> FakeHandle:
        from hud_plugin.registry import DisplayUnavailableError

        if session_id in self.unavailable:
            raise DisplayUnavailableError(f"no display for {session_id}")
        if self.fail_on_label == label.key:
            raise RuntimeError(f"cannot create {label.key}")
        handle = FakeHandle(session_id, label.key, provider)
        with self._lock:
            self.created.append(handle)
        return handle

    def remove_instance(self, session_id: int, handle: FakeHandle) -> None:
        with self._lock:
            self.removed.append(handle)
        if self.fail_remove:
            raise RuntimeError("session already gone")

    def live(self) -> List[FakeHandle]:
        with self._lock:
            removed_ids = {id(handle) for handle in self.removed}
            return [handle for handle in self.created if id(handle) not in removed_ids]

    def tick(self, session_id: int) -> List[str]:
        """Render every live instance of ``session_id`` like a refresh tick would."""

        return [handle.provider.render() for handle in self.live() if handle.session_id == session_id]


@pytest.fixture
def host_state() -> FakeHostState:
    return FakeHostState()


@pytest.fixture
def display() -> FakeDisplay:
    return FakeDisplay()
