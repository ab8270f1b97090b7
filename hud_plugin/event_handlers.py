"""Host lifecycle hooks that drive the overlay registry.

The host calls these from its own event threads. Each hook logs and swallows
its own failures so a HUD problem never interrupts round flow.
"""
from __future__ import annotations

import logging
from typing import Iterable, Optional

from hud_plugin.host_state import HostState, SessionView
from hud_plugin.registry import OverlayRegistry
from hud_plugin.settings import HudSettings

LOGGER = logging.getLogger("BasicCustomHUD.Events")


class HudEventHandlers:
    def __init__(self, registry: OverlayRegistry, settings: HudSettings, state: HostState) -> None:
        self._registry = registry
        self._settings = settings
        self._state = state

    def _hud_active(self) -> bool:
        return bool(self._settings.is_enabled) and self._settings.any_label_enabled()

    def on_round_started(self, sessions: Optional[Iterable[SessionView]] = None) -> None:
        """Reset the HUD and register every eligible session.

        ``sessions`` defaults to every session the host currently reports.
        """

        try:
            if not self._hud_active():
                return
            self._registry.start()
            targets = self._state.sessions() if sessions is None else sessions
            added = sum(1 for session in list(targets) if self._registry.add_session(session))
            LOGGER.debug("Round started; HUD registered for %d sessions.", added)
        except Exception as exc:
            LOGGER.error("Error in on_round_started: %s", exc, exc_info=exc)

    def on_round_ended(self) -> None:
        try:
            self._registry.stop_all()
        except Exception as exc:
            LOGGER.error("Error in on_round_ended: %s", exc, exc_info=exc)

    def on_session_spawned(self, session: Optional[SessionView]) -> None:
        try:
            if not self._hud_active():
                return
            if not self._state.round_in_progress():
                return
            self._registry.add_session(session)
        except Exception as exc:
            LOGGER.error("Error in on_session_spawned: %s", exc, exc_info=exc)

    def on_session_left(self, session: Optional[SessionView]) -> None:
        try:
            self._registry.remove_session(session)
        except Exception as exc:
            LOGGER.error("Error in on_session_left: %s", exc, exc_info=exc)
