"""Rotating message source backing the ``{rules}`` placeholder."""
from __future__ import annotations

import logging
import threading
import time
from pathlib import Path
from typing import List, Optional, Sequence

RULES_FILE = "rules.txt"
NO_RULES_TEXT = "No rules loaded"
DEFAULT_RULES: tuple[str, ...] = (
    "No teamkilling allowed",
    "Respect all players",
    "Follow staff instructions",
    "Have fun!",
)
_LIST_MARKERS = ("- ", "* ")

LOGGER = logging.getLogger("BasicCustomHUD.Rules")


def parse_rule_lines(lines: Sequence[str]) -> List[str]:
    """Return the displayable messages: blank lines dropped, leading list markers stripped."""

    messages: List[str] = []
    for raw in lines:
        text = raw.strip()
        if not text:
            continue
        for marker in _LIST_MARKERS:
            if text.startswith(marker):
                text = text[len(marker) :].strip()
                break
        if text and text not in {"-", "*"}:
            messages.append(text)
    return messages


class RotatingMessageList:
    """Cycle through messages, advancing at most once per elapsed interval.

    ``now`` is a monotonic timestamp in seconds; callers may inject it so the
    advance check can be driven deterministically.
    """

    def __init__(self, messages: Optional[Sequence[str]] = None, *, now: Optional[float] = None) -> None:
        self._lock = threading.Lock()
        self._messages: List[str] = list(messages or [])
        self._index = 0
        self._last_advance = time.monotonic() if now is None else float(now)

    @property
    def messages(self) -> List[str]:
        return list(self._messages)

    @property
    def index(self) -> int:
        return self._index

    # Rotation ------------------------------------------------------------

    def get_current(self, interval_seconds: float, now: Optional[float] = None) -> str:
        timestamp = time.monotonic() if now is None else float(now)
        with self._lock:
            count = len(self._messages)
            if count == 0:
                return NO_RULES_TEXT
            if timestamp - self._last_advance >= interval_seconds:
                self._index = (self._index + 1) % count
                self._last_advance = timestamp
            return self._messages[self._index]

    def replace(self, messages: Sequence[str], *, now: Optional[float] = None) -> None:
        """Swap in a new message list; the first message shows immediately."""

        timestamp = time.monotonic() if now is None else float(now)
        with self._lock:
            self._messages = list(messages)
            self._index = 0
            self._last_advance = timestamp

    # Loading -------------------------------------------------------------

    def load(self, config_dir: Path, *, now: Optional[float] = None) -> None:
        """Reload ``rules.txt`` from ``config_dir``, writing the defaults first if it is missing."""

        self.replace([], now=now)
        config_dir = Path(config_dir)
        try:
            config_dir.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            LOGGER.error("Could not create config directory for rules: %s", exc)
            return

        path = config_dir / RULES_FILE
        if not path.exists():
            try:
                path.write_text("\n".join(DEFAULT_RULES) + "\n", encoding="utf-8")
            except OSError as exc:
                LOGGER.error("Couldn't create rules file: %s", exc)
                return
            LOGGER.info("Created default rules file at: %s", path)

        try:
            lines = path.read_text(encoding="utf-8").splitlines()
        except OSError as exc:
            LOGGER.error("Failed to read rules file: %s", exc)
            return
        messages = parse_rule_lines(lines)
        self.replace(messages, now=now)
        LOGGER.debug("Loaded %d rules from file.", len(messages))
