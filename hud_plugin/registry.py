"""Per-session HUD instance tracking.

The registry is driven from two directions: host lifecycle notifications
(join/leave/round start/round end) arriving on arbitrary threads, and the
display primitive calling :meth:`LabelRenderer.render` on its own refresh
schedule. Mutations serialise on one lock; renders never take it. Calls into
the display primitive that release many instances at once run on a snapshot
taken under the lock, after the lock is released.
"""
from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import Any, Dict, List, Optional, Protocol, Sequence, Tuple, Union

from hud_plugin.host_state import HostState, SessionView
from hud_plugin.resolver import PlaceholderResolver
from hud_plugin.settings import LabelSpec

LOGGER = logging.getLogger("BasicCustomHUD.Registry")

Handle = Any
SessionLike = Union[SessionView, int, None]


class DisplayUnavailableError(RuntimeError):
    """Raised by a display primitive that cannot host instances for a session."""


class TextProvider(Protocol):
    def render(self, context: object = None) -> str: ...


class DisplayPrimitive(Protocol):
    """Host component that paints text for a session on its own schedule."""

    def create_instance(self, session_id: int, label: LabelSpec, provider: TextProvider) -> Handle: ...

    def remove_instance(self, session_id: int, handle: Handle) -> None: ...


class LabelRenderer:
    """Produce the current text of one label for one session.

    Registered once per instance with the display primitive, which calls
    :meth:`render` on every refresh tick. The session is looked up afresh each
    time; a session the host no longer knows renders as an empty string.
    """

    def __init__(self, label: LabelSpec, session_id: int, state: HostState, resolver: PlaceholderResolver) -> None:
        self.label = label
        self.session_id = session_id
        self._state = state
        self._resolver = resolver

    def render(self, context: object = None) -> str:
        try:
            session = self._state.session(self.session_id)
            if session is None:
                return ""
            text = self._resolver.resolve_label(self.label, session)
            if not text:
                return ""
            return f"<size={self.label.font_size}>{text}</size>"
        except Exception as exc:
            LOGGER.debug("Render failed for session %s label %s: %s", self.session_id, self.label.key, exc)
            return ""

    def __repr__(self) -> str:
        return f"LabelRenderer(label={self.label.key!r}, session_id={self.session_id})"


def _session_key(session: SessionLike) -> Optional[int]:
    if session is None:
        return None
    if isinstance(session, int) and not isinstance(session, bool):
        return session
    try:
        return int(session.session_id)  # type: ignore[union-attr]
    except Exception:
        return None


class OverlayRegistry:
    """Owns the HUD instances created for each connected session."""

    def __init__(
        self,
        display: DisplayPrimitive,
        state: HostState,
        resolver: PlaceholderResolver,
        labels: Sequence[LabelSpec],
        config_dir: Optional[Path] = None,
    ) -> None:
        self._display = display
        self._state = state
        self._resolver = resolver
        self._labels: Tuple[LabelSpec, ...] = tuple(labels)
        self._config_dir = Path(config_dir) if config_dir is not None else None
        self._lock = threading.Lock()
        self._entries: Dict[int, Tuple[Handle, ...]] = {}
        self._disposed = False

    # Introspection -------------------------------------------------------

    def __contains__(self, session: object) -> bool:
        key = _session_key(session)  # type: ignore[arg-type]
        with self._lock:
            return key in self._entries

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    @property
    def disposed(self) -> bool:
        return self._disposed

    def sessions(self) -> List[int]:
        with self._lock:
            return list(self._entries)

    def handles_for(self, session: SessionLike) -> Tuple[Handle, ...]:
        key = _session_key(session)
        with self._lock:
            return self._entries.get(key, ()) if key is not None else ()

    # Lifecycle -----------------------------------------------------------

    def start(self) -> None:
        """Drop every instance and reload the rule list and role catalog."""

        with self._lock:
            if self._disposed:
                return
            stale = self._take_all_locked()
            self._reload_sources_locked()
        self._release_entries(stale)
        LOGGER.debug("HUD system started.")

    def stop_all(self) -> int:
        """Remove every session's instances; returns how many sessions were dropped."""

        with self._lock:
            entries = self._take_all_locked()
        self._release_entries(entries)
        if entries:
            LOGGER.debug("HUD stopped, instances removed for %d sessions.", len(entries))
        return len(entries)

    def dispose(self) -> None:
        with self._lock:
            if self._disposed:
                return
            self._disposed = True
            entries = self._take_all_locked()
        self._release_entries(entries)

    # Sessions ------------------------------------------------------------

    def add_session(self, session: SessionLike) -> bool:
        """Create one instance per enabled label; returns False when nothing was recorded.

        Either every instance for the session is recorded or none is. When a
        creation fails part-way the instances already created in this call are
        removed again before returning.
        """

        key = _session_key(session)
        if key is None:
            return False
        orphans: List[Handle] = []
        with self._lock:
            if self._disposed or key in self._entries:
                return False
            created: List[Handle] = []
            try:
                for label in self._labels:
                    if not label.enabled:
                        continue
                    renderer = LabelRenderer(label, key, self._state, self._resolver)
                    created.append(self._display.create_instance(key, label, renderer))
            except DisplayUnavailableError as exc:
                LOGGER.debug("Display unavailable for session %s: %s", key, exc)
                orphans = created
            except Exception as exc:
                LOGGER.error("Failed to create HUD instances for session %s: %s", key, exc)
                orphans = created
            else:
                self._entries[key] = tuple(created)
                return True
        self._release(key, orphans)
        return False

    def remove_session(self, session: SessionLike) -> bool:
        """Forget the session and release its instances; False when it had none recorded."""

        key = _session_key(session)
        if key is None:
            return False
        with self._lock:
            handles = self._entries.pop(key, None)
        if handles is None:
            return False
        self._release(key, handles)
        return True

    # Implementation details ---------------------------------------------

    def _take_all_locked(self) -> List[Tuple[int, Tuple[Handle, ...]]]:
        entries = list(self._entries.items())
        self._entries.clear()
        return entries

    def _reload_sources_locked(self) -> None:
        if self._config_dir is None:
            return
        sources = (("rules", self._resolver.rotation), ("role colors", self._resolver.roles))
        for name, source in sources:
            try:
                source.load(self._config_dir)
            except Exception as exc:
                LOGGER.error("Failed to load %s config: %s", name, exc)

    def _release_entries(self, entries: Sequence[Tuple[int, Tuple[Handle, ...]]]) -> None:
        for key, handles in entries:
            self._release(key, handles)

    def _release(self, key: int, handles: Sequence[Handle]) -> None:
        for handle in handles:
            try:
                self._display.remove_instance(key, handle)
            except Exception as exc:
                # Session is usually gone already; the entry is forgotten either way.
                LOGGER.debug("Could not remove HUD instance for session %s: %s", key, exc)
