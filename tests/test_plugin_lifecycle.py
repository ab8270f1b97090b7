from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import List

import pytest

import load
from version import __version__
from hud_plugin import settings as hud_settings


class _ListHandler(logging.Handler):
    def __init__(self) -> None:
        super().__init__(level=logging.DEBUG)
        self.messages: List[str] = []

    def emit(self, record: logging.LogRecord) -> None:
        self.messages.append(record.getMessage())


@pytest.fixture
def host_logger():
    logger = logging.getLogger("tests.host")
    logger.setLevel(logging.DEBUG)
    logger.propagate = False
    handler = _ListHandler()
    logger.addHandler(handler)
    yield logger, handler
    logger.removeHandler(handler)


@pytest.fixture(autouse=True)
def _reset_plugin():
    load.plugin_stop()
    yield
    load.plugin_stop()


def test_logger_uses_plugin_name():
    logger = logging.getLogger(load.PLUGIN_NAME)
    assert logger.name == load.PLUGIN_NAME
    assert load.plugin_name == load.PLUGIN_NAME
    assert load.version == __version__
    assert logger.propagate is False
    assert sum(isinstance(h, load._HostLogHandler) for h in logger.handlers) == 1


def test_child_loggers_share_plugin_hierarchy():
    from hud_plugin import registry, resolver

    assert registry.LOGGER.name.startswith(f"{load.PLUGIN_NAME}.")
    assert resolver.LOGGER.parent is logging.getLogger(load.PLUGIN_NAME)


def test_host_logger_receives_plugin_messages(tmp_path, display, host_state, host_logger):
    logger, handler = host_logger

    load.plugin_start(tmp_path, display, host_state, host_logger=logger)

    assert any("has been enabled" in message for message in handler.messages)
    assert any(f"[{load.PLUGIN_NAME}]" in message for message in handler.messages)


def test_debug_setting_lowers_log_level(tmp_path, display, host_state, host_logger):
    logger, handler = host_logger
    (tmp_path / hud_settings.SETTINGS_FILE).write_text(json.dumps({"debug": True}), encoding="utf-8")

    load.plugin_start(tmp_path, display, host_state, host_logger=logger)
    logging.getLogger("BasicCustomHUD.Registry").debug("registry detail")

    assert load.LOGGER.level == logging.DEBUG
    assert any("registry detail" in message for message in handler.messages)
    load.plugin_stop()
    assert load.LOGGER.level == logging.INFO


def test_debug_messages_hidden_by_default(tmp_path, display, host_state, host_logger):
    logger, handler = host_logger

    load.plugin_start(tmp_path, display, host_state, host_logger=logger)
    logging.getLogger("BasicCustomHUD.Registry").debug("registry detail")

    assert not any("registry detail" in message for message in handler.messages)


def test_host_logger_is_released_on_stop(tmp_path, display, host_state, host_logger):
    logger, handler = host_logger
    load.plugin_start(tmp_path, display, host_state, host_logger=logger)
    load.plugin_stop()
    handler.messages.clear()

    load.LOGGER.info("after stop")

    assert handler.messages == []


def test_config_dir_is_scoped_by_port(tmp_path, display, host_state):
    assert load.plugin_start(tmp_path, display, host_state, port=7777) == load.PLUGIN_NAME

    config_dir = tmp_path / "7777" / load.PLUGIN_NAME
    assert (config_dir / hud_settings.SETTINGS_FILE).exists()
    assert load._resolve_config_dir(tmp_path, None) == Path(tmp_path)


def test_plugin_start_is_idempotent(tmp_path, display, host_state):
    load.plugin_start(tmp_path, display, host_state)
    runtime = load._plugin

    load.plugin_start(tmp_path, display, host_state)

    assert load._plugin is runtime
    assert runtime.running


def test_hooks_before_start_are_ignored(display, host_state):
    session = host_state.add_session(1)

    load.round_started()
    load.session_spawned(session)
    load.session_left(session)
    load.round_ended()

    assert display.created == []


def test_round_lifecycle_through_host_hooks(tmp_path, display, host_state):
    first = host_state.add_session(1)
    host_state.add_session(2)
    load.plugin_start(tmp_path, display, host_state)

    load.round_started()
    assert sorted(load._plugin.registry.sessions()) == [1, 2]
    assert len(display.created) == 6

    load.session_left(first)
    assert load._plugin.registry.sessions() == [2]

    late = host_state.add_session(3)
    load.session_spawned(late)
    assert sorted(load._plugin.registry.sessions()) == [2, 3]

    load.round_ended()
    assert display.live() == []

    load.round_started()
    load.plugin_stop()
    assert load._plugin is None
    assert display.live() == []
    load.plugin_stop()


def test_stop_disposes_registry(tmp_path, display, host_state):
    load.plugin_start(tmp_path, display, host_state)
    runtime = load._plugin

    load.plugin_stop()

    assert runtime.registry.disposed
    assert not runtime.running
    runtime.round_started([host_state.add_session(1)])
    assert display.created == []

