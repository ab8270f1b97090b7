"""Settings management for the BasicCustomHUD plugin."""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Callable, Dict, Mapping, Optional, Tuple

SETTINGS_FILE = "hud_settings.json"
RULE_PASS_TIME_MIN = 0.1
FONT_SIZE_MIN = 1
FONT_SIZE_MAX = 200
ALIGNMENT_CHOICES = ("Left", "Center", "Right")
SYNC_SPEED_CHOICES = ("Fastest", "Fast", "Normal", "Slow", "Slowest", "UnSync")

LOGGER = logging.getLogger("BasicCustomHUD.Settings")


@dataclass(frozen=True)
class LabelSpec:
    """Layout and template for one HUD label; shared by every session."""

    key: str
    enabled: bool = True
    only_spectator: bool = False
    y: int = 700
    x: int = 0
    font_size: int = 20
    alignment: str = "Center"
    sync_speed: str = "Normal"
    template: str = ""


DEFAULT_STANDARD_HUD = LabelSpec(
    key="standard_hud",
    template=(
        "<color=red>NAME:</color>{playername} | <color=green>TIME:</color>{time} | "
        "<color=#42e9f5>TPS:</color>{tps} | <color=blue>ROLE:</color> {role} | "
        "<color=#777777>ID:</color>{id}\nNext Spawn: {nextspawn}"
    ),
)

DEFAULT_RULES_HUD = LabelSpec(
    key="rules_hud",
    only_spectator=True,
    y=730,
    font_size=16,
    sync_speed="Slow",
    template="<color=#ffcc00>{rules}</color>",
)

DEFAULT_SPECTATOR_ANNOUNCEMENT_HUD = LabelSpec(
    key="spectator_announcement_hud",
    only_spectator=True,
    y=650,
    sync_speed="Slow",
    template="Join Our Discord Server!",
)


def _coerce_bool(value: Any, default: bool) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return bool(value)
    if isinstance(value, str):
        token = value.strip().lower()
        if token in {"1", "true", "yes", "on"}:
            return True
        if token in {"0", "false", "no", "off"}:
            return False
    return default


def _coerce_int(value: Any, default: int, *, minimum: Optional[int] = None, maximum: Optional[int] = None) -> int:
    if isinstance(value, bool):
        return default
    try:
        numeric = int(value)
    except (TypeError, ValueError):
        numeric = default
    if minimum is not None:
        numeric = max(minimum, numeric)
    if maximum is not None:
        numeric = min(maximum, numeric)
    return numeric


def _coerce_float(value: Any, default: float, *, minimum: Optional[float] = None, maximum: Optional[float] = None) -> float:
    if isinstance(value, bool):
        return default
    try:
        numeric = float(value)
    except (TypeError, ValueError):
        numeric = default
    if numeric != numeric:
        numeric = default
    if minimum is not None:
        numeric = max(minimum, numeric)
    if maximum is not None:
        numeric = min(maximum, numeric)
    return numeric


def _choice_lookup(choices: Tuple[str, ...]) -> Callable[[str], str]:
    table = {choice.lower(): choice for choice in choices}
    return lambda text: table.get(text.lower(), text)


def _coerce_str(
    value: Any,
    default: str,
    *,
    allowed: Optional[Tuple[str, ...]] = None,
    transform: Callable[[str], str] | None = None,
) -> str:
    if value is None:
        return default
    try:
        text = str(value)
    except Exception:
        return default
    text = text.strip()
    if transform:
        text = transform(text)
    if allowed and text not in allowed:
        return default
    return text or default


def parse_label_spec(raw: Any, defaults: LabelSpec) -> LabelSpec:
    """Build a :class:`LabelSpec` from a settings mapping, keeping defaults for bad values."""

    if not isinstance(raw, Mapping):
        return defaults
    template = raw.get("template", defaults.template)
    return replace(
        defaults,
        enabled=_coerce_bool(raw.get("enabled"), defaults.enabled),
        only_spectator=_coerce_bool(raw.get("only_spectator"), defaults.only_spectator),
        y=_coerce_int(raw.get("y"), defaults.y),
        x=_coerce_int(raw.get("x"), defaults.x),
        font_size=_coerce_int(raw.get("font_size"), defaults.font_size, minimum=FONT_SIZE_MIN, maximum=FONT_SIZE_MAX),
        alignment=_coerce_str(
            raw.get("alignment"),
            defaults.alignment,
            allowed=ALIGNMENT_CHOICES,
            transform=_choice_lookup(ALIGNMENT_CHOICES),
        ),
        sync_speed=_coerce_str(
            raw.get("sync_speed"),
            defaults.sync_speed,
            allowed=SYNC_SPEED_CHOICES,
            transform=_choice_lookup(SYNC_SPEED_CHOICES),
        ),
        # Templates keep their whitespace; newlines are meaningful to the HUD.
        template=template if isinstance(template, str) else defaults.template,
    )


def _label_payload(label: LabelSpec) -> Dict[str, Any]:
    return {
        "enabled": bool(label.enabled),
        "only_spectator": bool(label.only_spectator),
        "y": int(label.y),
        "x": int(label.x),
        "font_size": int(label.font_size),
        "alignment": label.alignment,
        "sync_speed": label.sync_speed,
        "template": label.template,
    }


@dataclass
class HudSettings:
    """Simple JSON-backed settings store.

    The file is created with documented defaults on first load so admins have
    something to edit. Unknown keys are ignored and malformed values fall back
    to the defaults above.
    """

    config_dir: Path
    is_enabled: bool = True
    debug: bool = False
    rule_pass_time: float = 5.0
    standard_hud: LabelSpec = field(default=DEFAULT_STANDARD_HUD)
    rules_hud: LabelSpec = field(default=DEFAULT_RULES_HUD)
    spectator_announcement_hud: LabelSpec = field(default=DEFAULT_SPECTATOR_ANNOUNCEMENT_HUD)

    def __post_init__(self) -> None:
        self.config_dir = Path(self.config_dir)
        self._path = self.config_dir / SETTINGS_FILE
        if self._load_from_json():
            return
        try:
            self.save()
            LOGGER.info("Created default settings file at: %s", self._path)
        except OSError as exc:
            LOGGER.error("Couldn't create settings file %s: %s", self._path, exc)

    # Label access --------------------------------------------------------

    @property
    def path(self) -> Path:
        return self._path

    @property
    def labels(self) -> Tuple[LabelSpec, ...]:
        """All labels in priority order, enabled or not."""

        return (self.standard_hud, self.rules_hud, self.spectator_announcement_hud)

    def enabled_labels(self) -> Tuple[LabelSpec, ...]:
        return tuple(label for label in self.labels if label.enabled)

    def any_label_enabled(self) -> bool:
        return any(label.enabled for label in self.labels)

    # Persistence ---------------------------------------------------------

    def _load_from_json(self) -> bool:
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return False
        except OSError as exc:
            LOGGER.error("Failed to read %s: %s", self._path, exc)
            return True
        except json.JSONDecodeError:
            LOGGER.error("%s is not valid JSON; using default settings.", SETTINGS_FILE)
            return True
        if not isinstance(data, Mapping):
            LOGGER.error("%s must contain a JSON object; using default settings.", SETTINGS_FILE)
            return True
        self._apply_raw_data(data)
        return True

    def _apply_raw_data(self, data: Mapping[str, Any]) -> None:
        self.is_enabled = _coerce_bool(data.get("is_enabled"), self.is_enabled)
        self.debug = _coerce_bool(data.get("debug"), self.debug)
        self.rule_pass_time = _coerce_float(data.get("rule_pass_time"), self.rule_pass_time, minimum=RULE_PASS_TIME_MIN)
        self.standard_hud = parse_label_spec(data.get("standard_hud"), self.standard_hud)
        self.rules_hud = parse_label_spec(data.get("rules_hud"), self.rules_hud)
        self.spectator_announcement_hud = parse_label_spec(
            data.get("spectator_announcement_hud"),
            self.spectator_announcement_hud,
        )

    def save(self) -> None:
        self.config_dir.mkdir(parents=True, exist_ok=True)
        self._path.write_text(json.dumps(self._payload(), indent=2), encoding="utf-8")

    def _payload(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "is_enabled": bool(self.is_enabled),
            "debug": bool(self.debug),
            "rule_pass_time": float(self.rule_pass_time),
        }
        for label in self.labels:
            payload[label.key] = _label_payload(label)
        return payload
