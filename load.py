"""Primary entry point for the BasicCustomHUD plugin.

The host loads this module, calls :func:`plugin_start` once with its display
and state adapters, and then forwards four lifecycle notifications:
:func:`round_started`, :func:`round_ended`, :func:`session_spawned` and
:func:`session_left`. :func:`plugin_stop` tears everything down.
"""
from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import Iterable, Optional, Tuple, Union

from version import __version__ as PLUGIN_VERSION
from hud_plugin.event_handlers import HudEventHandlers
from hud_plugin.host_state import HostState, SessionView
from hud_plugin.registry import DisplayPrimitive, OverlayRegistry
from hud_plugin.resolver import PlaceholderResolver
from hud_plugin.roles import RoleCatalog
from hud_plugin.rotation import RotatingMessageList
from hud_plugin.settings import HudSettings

PLUGIN_NAME = "BasicCustomHUD"
PLUGIN_DESCRIPTION = "Displays a customizable HUD with player info during rounds."
LOG_FORMAT = f"[%(asctime)s] [{PLUGIN_NAME}] %(message)s"


class _HostLogHandler(logging.Handler):
    """Send plugin records to the logger the host registered, or to the root logger until it does."""

    def __init__(self) -> None:
        super().__init__()
        self.host_logger: Optional[logging.Logger] = None
        self.setFormatter(logging.Formatter(LOG_FORMAT, "%H:%M:%S"))

    def emit(self, record: logging.LogRecord) -> None:
        try:
            target = self.host_logger or logging.getLogger()
            if target.isEnabledFor(record.levelno):
                target.log(record.levelno, self.format(record))
        except Exception:
            self.handleError(record)


def _plugin_logger() -> Tuple[logging.Logger, _HostLogHandler]:
    """Return the ``BasicCustomHUD`` logger and its host bridge, attaching the bridge once."""

    logger = logging.getLogger(PLUGIN_NAME)
    handler = next((h for h in logger.handlers if isinstance(h, _HostLogHandler)), None)
    if handler is None:
        handler = _HostLogHandler()
        logger.addHandler(handler)
    logger.setLevel(logging.INFO)
    # Child loggers (BasicCustomHUD.Registry etc.) reach the host through the bridge only.
    logger.propagate = False
    return logger, handler


LOGGER, _HOST_HANDLER = _plugin_logger()


def _set_debug_logging(enabled: bool) -> None:
    LOGGER.setLevel(logging.DEBUG if enabled else logging.INFO)


def _resolve_config_dir(plugin_dir: Union[str, Path], port: Optional[int]) -> Path:
    """Each server instance on a host keeps its own config folder, keyed by port."""

    base = Path(plugin_dir)
    if port is None:
        return base
    return base / str(int(port)) / PLUGIN_NAME


class _PluginRuntime:
    """Wires settings, catalogs, resolver and registry together for one plugin lifetime."""

    def __init__(
        self,
        plugin_dir: Union[str, Path],
        display: DisplayPrimitive,
        state: HostState,
        *,
        port: Optional[int] = None,
    ) -> None:
        self.config_dir = _resolve_config_dir(plugin_dir, port)
        self.settings = HudSettings(self.config_dir)
        self.rotation = RotatingMessageList()
        self.roles = RoleCatalog()
        self.resolver = PlaceholderResolver(state, self.rotation, self.roles, self.settings.rule_pass_time)
        self.registry = OverlayRegistry(display, state, self.resolver, self.settings.labels, self.config_dir)
        self.handlers = HudEventHandlers(self.registry, self.settings, state)
        self._lock = threading.Lock()
        self._running = False

    @property
    def running(self) -> bool:
        return self._running

    # Lifecycle ------------------------------------------------------------

    def start(self) -> str:
        with self._lock:
            if self._running:
                return PLUGIN_NAME
            self._running = True
        _set_debug_logging(bool(self.settings.debug))
        if not self.settings.is_enabled:
            LOGGER.info("%s is disabled in %s; HUD will not be shown.", PLUGIN_NAME, self.settings.path.name)
        LOGGER.info("%s has been enabled! v%s", PLUGIN_NAME, PLUGIN_VERSION)
        return PLUGIN_NAME

    def stop(self) -> None:
        with self._lock:
            if not self._running:
                return
            self._running = False
        self.registry.dispose()
        LOGGER.info("%s has been disabled.", PLUGIN_NAME)

    # Host notifications ---------------------------------------------------

    def round_started(self, sessions: Optional[Iterable[SessionView]] = None) -> None:
        if self._running:
            self.handlers.on_round_started(sessions)

    def round_ended(self) -> None:
        if self._running:
            self.handlers.on_round_ended()

    def session_spawned(self, session: Optional[SessionView]) -> None:
        if self._running:
            self.handlers.on_session_spawned(session)

    def session_left(self, session: Optional[SessionView]) -> None:
        if self._running:
            self.handlers.on_session_left(session)


# Host hook functions ------------------------------------------------------

_plugin: Optional[_PluginRuntime] = None


def plugin_start(
    plugin_dir: Union[str, Path],
    display: DisplayPrimitive,
    state: HostState,
    *,
    port: Optional[int] = None,
    host_logger: Optional[logging.Logger] = None,
) -> str:
    """Host entrypoint: initialise the plugin and start its runtime once."""
    global _plugin
    if host_logger is not None:
        _HOST_HANDLER.host_logger = host_logger
    if _plugin is not None:
        return _plugin.start()
    LOGGER.debug("Initialising %s from %s", PLUGIN_NAME, plugin_dir)
    _plugin = _PluginRuntime(plugin_dir, display, state, port=port)
    return _plugin.start()


def plugin_stop() -> None:
    """Host entrypoint: stop the plugin safely; idempotent if not running."""
    global _plugin
    if _plugin:
        try:
            _plugin.stop()
        finally:
            _plugin = None
    _HOST_HANDLER.host_logger = None
    _set_debug_logging(False)


def round_started(sessions: Optional[Iterable[SessionView]] = None) -> None:
    if _plugin:
        _plugin.round_started(sessions)


def round_ended() -> None:
    if _plugin:
        _plugin.round_ended()


def session_spawned(session: Optional[SessionView]) -> None:
    if _plugin:
        _plugin.session_spawned(session)


def session_left(session: Optional[SessionView]) -> None:
    if _plugin:
        _plugin.session_left(session)


# Metadata expected by some plugin loaders
name = PLUGIN_NAME
plugin_name = PLUGIN_NAME
version = PLUGIN_VERSION
