"""Role display names and colours loaded from ``rolecolors.txt``.

Each non-comment line reads ``RoleId: Display Name, colour``. Colours may be
hex codes (``#FF0000``) or rich-text colour names (``red``). When the file is
missing a default one is generated from :data:`BUILTIN_ROLES`, coloured by the
team each role belongs to.
"""
from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Mapping, Optional, Tuple

ROLE_COLORS_FILE = "rolecolors.txt"
DEFAULT_ROLE_COLOR = "white"
NONE_ROLE = "None"

LOGGER = logging.getLogger("BasicCustomHUD.Roles")

TEAM_COLORS: Mapping[str, str] = {
    "SCPs": "red",
    "FoundationForces": "#0096FF",
    "ChaosInsurgency": "#008F1C",
    "Scientists": "#FFFF7C",
    "ClassD": "#FF8E00",
    "Dead": "grey",
}

# (role id, team) in the host's role enumeration order.
BUILTIN_ROLES: Tuple[Tuple[str, str], ...] = (
    (NONE_ROLE, "Dead"),
    ("Scp173", "SCPs"),
    ("ClassD", "ClassD"),
    ("Spectator", "Dead"),
    ("Scp106", "SCPs"),
    ("NtfSpecialist", "FoundationForces"),
    ("Scp049", "SCPs"),
    ("Scientist", "Scientists"),
    ("Scp079", "SCPs"),
    ("ChaosConscript", "ChaosInsurgency"),
    ("Scp096", "SCPs"),
    ("Scp0492", "SCPs"),
    ("NtfSergeant", "FoundationForces"),
    ("NtfCaptain", "FoundationForces"),
    ("NtfPrivate", "FoundationForces"),
    ("Tutorial", "OtherAlive"),
    ("FacilityGuard", "FoundationForces"),
    ("Scp939", "SCPs"),
    ("CustomRole", "Dead"),
    ("ChaosRifleman", "ChaosInsurgency"),
    ("ChaosMarauder", "ChaosInsurgency"),
    ("ChaosRepressor", "ChaosInsurgency"),
    ("Overwatch", "Dead"),
    ("Filmmaker", "Dead"),
    ("Scp3114", "SCPs"),
    ("Destroyed", "Dead"),
    ("Flamingo", "Flamingos"),
    ("AlphaFlamingo", "Flamingos"),
    ("ZombieFlamingo", "Flamingos"),
)

PRETTY_NAMES: Mapping[str, str] = {
    "ClassD": "Class-D",
    "FacilityGuard": "Facility Guard",
    "NtfPrivate": "Nine-Tailed Fox Private",
    "NtfSergeant": "Nine-Tailed Fox Sergeant",
    "NtfSpecialist": "Nine-Tailed Fox Specialist",
    "NtfCaptain": "Nine-Tailed Fox Captain",
    "ChaosConscript": "Chaos Insurgency Conscript",
    "ChaosRifleman": "Chaos Insurgency Rifleman",
    "ChaosRepressor": "Chaos Insurgency Repressor",
    "ChaosMarauder": "Chaos Insurgency Marauder",
}

_KNOWN_ROLES = frozenset(role for role, _team in BUILTIN_ROLES)


@dataclass(frozen=True)
class RoleDisplay:
    name: str
    color: str


def default_color(team: str) -> str:
    return TEAM_COLORS.get(team, DEFAULT_ROLE_COLOR)


def default_entries() -> Dict[str, RoleDisplay]:
    """The table written to a fresh ``rolecolors.txt``; the ``None`` role is skipped."""

    return {
        role: RoleDisplay(PRETTY_NAMES.get(role, role), default_color(team))
        for role, team in BUILTIN_ROLES
        if role != NONE_ROLE
    }


def render_default_file() -> str:
    lines = [
        "# Format: RoleId: Name, Color",
        "# Colors can be hex codes (#FF0000) or standard names (red, blue, etc.)",
    ]
    lines.extend(f"{role}: {entry.name}, {entry.color}" for role, entry in default_entries().items())
    return "\n".join(lines) + "\n"


def parse_role_line(line: str) -> Optional[Tuple[str, RoleDisplay]]:
    text = line.strip()
    if not text or text.startswith("#"):
        return None
    role, sep, rest = text.partition(":")
    if not sep:
        return None
    role = role.strip()
    if role not in _KNOWN_ROLES:
        return None
    name, _, color = rest.partition(",")
    name = name.strip()
    color = color.strip() or DEFAULT_ROLE_COLOR
    return role, RoleDisplay(name or role, color)


class RoleCatalog:
    """Lookup of role id to display name/colour with computed fallbacks."""

    def __init__(self, entries: Optional[Mapping[str, RoleDisplay]] = None) -> None:
        self._lock = threading.Lock()
        self._entries: Dict[str, RoleDisplay] = dict(entries or {})

    def __len__(self) -> int:
        return len(self._entries)

    def entries(self) -> Dict[str, RoleDisplay]:
        return dict(self._entries)

    # Lookups -------------------------------------------------------------

    def get_name(self, role: object) -> str:
        key = str(role)
        entry = self._entries.get(key)
        return entry.name if entry is not None else key

    def get_color(self, role: object) -> str:
        entry = self._entries.get(str(role))
        return entry.color if entry is not None else DEFAULT_ROLE_COLOR

    def format_role(self, role: object) -> str:
        """Rich-text rendering used by the ``{role}`` style placeholders."""

        return f"<color={self.get_color(role)}>{self.get_name(role)}</color>"

    # Loading -------------------------------------------------------------

    def load(self, config_dir: Path) -> None:
        """Replace the catalog with the contents of ``rolecolors.txt``.

        The previous entries are kept when the directory cannot be created;
        a missing file is generated from the built-in table first.
        """

        config_dir = Path(config_dir)
        try:
            config_dir.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            LOGGER.error("Could not create config directory for role colors: %s", exc)
            return
        path = config_dir / ROLE_COLORS_FILE
        if not path.exists():
            self._write_default(path)
        entries: Dict[str, RoleDisplay] = {}
        try:
            lines = path.read_text(encoding="utf-8").splitlines()
        except OSError as exc:
            LOGGER.error("Failed to parse role config: %s", exc)
        else:
            for line in lines:
                parsed = parse_role_line(line)
                if parsed is not None:
                    role, entry = parsed
                    entries[role] = entry
        with self._lock:
            self._entries = entries
        LOGGER.debug("Loaded %d role configurations.", len(entries))

    @staticmethod
    def _write_default(path: Path) -> None:
        try:
            path.write_text(render_default_file(), encoding="utf-8")
        except OSError as exc:
            LOGGER.error("Failed to create default role config: %s", exc)
            return
        LOGGER.info("Created default role config at: %s", path)
