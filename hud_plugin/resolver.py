"""Placeholder resolution for HUD templates.

Templates contain ``{name}`` tokens (``name`` being a run of word characters,
matched case-insensitively). Every known token is computed by its own
evaluator which returns a :class:`TokenResult`; a result without a value, or an
evaluator that raises, substitutes the token's fallback text so one broken
state source never blanks the rest of the label. Unknown tokens are left in the
output untouched so admins can use literal ``{curly}`` text.
"""
from __future__ import annotations

import logging
import re
import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict, Mapping, Optional, Union

from hud_plugin.host_state import (
    HostState,
    SessionView,
    WaveFaction,
    WaveQueueState,
    is_spectator_role,
)
from hud_plugin.roles import RoleCatalog
from hud_plugin.rotation import RotatingMessageList
from hud_plugin.settings import LabelSpec

LOGGER = logging.getLogger("BasicCustomHUD.Resolver")

_PARAM_PATTERN = re.compile(r"\{(\w+)\}")
SPAWNING_TEXT = "Spawning..."
NOT_AVAILABLE = "N/A"
UNKNOWN = "Unknown"
NO_TARGET = "None"
_FAILURE_LOG_INTERVAL = 30.0  # seconds


@dataclass(frozen=True)
class TokenResult:
    """Outcome of one token evaluator: either ``value`` or a ``reason`` it has none."""

    value: Optional[str] = None
    reason: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.value is not None

    @classmethod
    def of(cls, value: object) -> "TokenResult":
        return cls(value=str(value))

    @classmethod
    def unavailable(cls, reason: str) -> "TokenResult":
        return cls(reason=reason)


@dataclass(frozen=True)
class TokenContext:
    session: SessionView
    state: HostState
    rotation: RotatingMessageList
    roles: RoleCatalog
    rotation_interval: float
    now: Optional[float] = None


TokenEvaluator = Callable[[TokenContext], TokenResult]


@dataclass(frozen=True)
class TokenSpec:
    evaluate: TokenEvaluator
    fallback: Optional[str]  # None keeps the literal token text


def format_clock(seconds: float, *, wrap_hours: bool = False) -> str:
    """Render a duration as zero-padded ``MM:SS``.

    Countdowns show total minutes. With ``wrap_hours`` the hours are dropped,
    matching a round clock that only shows the minutes component.
    """

    total = max(0, int(seconds))
    minutes, secs = divmod(total, 60)
    if wrap_hours:
        minutes %= 60
    return f"{minutes:02d}:{secs:02d}"


def _queue_is_transient(raw: object) -> bool:
    try:
        return WaveQueueState(raw).is_transient
    except ValueError:
        return False


# Evaluators ---------------------------------------------------------------


def _eval_tps(ctx: TokenContext) -> TokenResult:
    return TokenResult.of(f"{float(ctx.state.tick_rate()):.1f}")


def _eval_player_count(ctx: TokenContext) -> TokenResult:
    return TokenResult.of(int(ctx.state.player_count()))


def _eval_max_players(ctx: TokenContext) -> TokenResult:
    return TokenResult.of(int(ctx.state.max_players()))


def _eval_id(ctx: TokenContext) -> TokenResult:
    return TokenResult.of(int(ctx.session.session_id))


def _eval_player_name(ctx: TokenContext) -> TokenResult:
    nickname = ctx.session.nickname
    if nickname is None:
        return TokenResult.unavailable("session has no nickname")
    return TokenResult.of(nickname)


def _eval_role(ctx: TokenContext) -> TokenResult:
    return TokenResult.of(ctx.roles.format_role(ctx.session.role))


def _eval_time(ctx: TokenContext) -> TokenResult:
    return TokenResult.of(format_clock(ctx.state.round_duration(), wrap_hours=True))


def _eval_rules(ctx: TokenContext) -> TokenResult:
    return TokenResult.of(ctx.rotation.get_current(ctx.rotation_interval, now=ctx.now))


def _eval_next_spawn(ctx: TokenContext) -> TokenResult:
    if _queue_is_transient(ctx.state.wave_queue_state()):
        return TokenResult.of(SPAWNING_TEXT)
    soonest: Optional[float] = None
    for wave in ctx.state.waves():
        try:
            remaining = float(wave.time_left)
        except (TypeError, ValueError):
            continue
        if remaining > 0 and (soonest is None or remaining < soonest):
            soonest = remaining
    if soonest is None:
        return TokenResult.unavailable("no wave is counting down")
    return TokenResult.of(format_clock(soonest))


def _faction_spawn(ctx: TokenContext, faction: WaveFaction) -> TokenResult:
    waves = [wave for wave in ctx.state.waves() if wave.faction == faction and not wave.mini_wave]
    if _queue_is_transient(ctx.state.wave_queue_state()) and any(wave.ready_to_spawn for wave in waves):
        return TokenResult.of(SPAWNING_TEXT)
    if waves and waves[0].time_left > 0:
        return TokenResult.of(format_clock(waves[0].time_left))
    return TokenResult.unavailable(f"no {faction.value} wave is counting down")


def _eval_mtf_spawn(ctx: TokenContext) -> TokenResult:
    return _faction_spawn(ctx, WaveFaction.NTF)


def _eval_chaos_spawn(ctx: TokenContext) -> TokenResult:
    return _faction_spawn(ctx, WaveFaction.CHAOS)


def _spectated(ctx: TokenContext) -> Optional[SessionView]:
    return ctx.session.spectating


def _eval_spectated_name(ctx: TokenContext) -> TokenResult:
    target = _spectated(ctx)
    if target is None or target.nickname is None:
        return TokenResult.unavailable("not spectating anyone")
    return TokenResult.of(target.nickname)


def _eval_spectated_id(ctx: TokenContext) -> TokenResult:
    target = _spectated(ctx)
    if target is None:
        return TokenResult.unavailable("not spectating anyone")
    return TokenResult.of(int(target.session_id))


def _eval_spectated_role(ctx: TokenContext) -> TokenResult:
    target = _spectated(ctx)
    if target is None:
        return TokenResult.unavailable("not spectating anyone")
    return TokenResult.of(ctx.roles.format_role(target.role))


def _eval_spectator_count(ctx: TokenContext) -> TokenResult:
    return TokenResult.of(sum(1 for session in ctx.state.sessions() if str(session.role) == "Spectator"))


def _eval_generator_count(ctx: TokenContext) -> TokenResult:
    generators = list(ctx.state.generators())
    engaged = sum(1 for generator in generators if generator.engaged)
    return TokenResult.of(f"{engaged}/{len(generators)}")


def _eval_warhead(ctx: TokenContext) -> TokenResult:
    status = ctx.state.warhead()
    if status is None:
        return TokenResult.unavailable("warhead not initialised")
    if status.detonated:
        return TokenResult.of("Detonated")
    if status.detonation_in_progress:
        remaining = int(status.detonation_time)
        if remaining > 0:
            return TokenResult.of(f"Detonating in {remaining}s")
        return TokenResult.of("Detonating")
    if status.lever_enabled:
        return TokenResult.of("Armed")
    return TokenResult.of("Idle")


_SPAWN_TOKEN = TokenSpec(_eval_next_spawn, NOT_AVAILABLE)

TOKENS: Mapping[str, TokenSpec] = {
    "tps": TokenSpec(_eval_tps, NOT_AVAILABLE),
    "playercount": TokenSpec(_eval_player_count, "0"),
    "maxplayers": TokenSpec(_eval_max_players, "0"),
    "id": TokenSpec(_eval_id, NOT_AVAILABLE),
    "playername": TokenSpec(_eval_player_name, UNKNOWN),
    "role": TokenSpec(_eval_role, UNKNOWN),
    "time": TokenSpec(_eval_time, "00:00"),
    "rules": TokenSpec(_eval_rules, None),
    "mtfspawnleft": TokenSpec(_eval_mtf_spawn, NOT_AVAILABLE),
    "chaosspawnleft": TokenSpec(_eval_chaos_spawn, NOT_AVAILABLE),
    "nextspawn": _SPAWN_TOKEN,
    "nextwave": _SPAWN_TOKEN,
    "spectated_name": TokenSpec(_eval_spectated_name, NO_TARGET),
    "spectated_id": TokenSpec(_eval_spectated_id, NO_TARGET),
    "spectated_role": TokenSpec(_eval_spectated_role, NO_TARGET),
    "spectatorcount": TokenSpec(_eval_spectator_count, "0"),
    "generatorcount": TokenSpec(_eval_generator_count, "0/0"),
    "warhead": TokenSpec(_eval_warhead, UNKNOWN),
}


class PlaceholderResolver:
    """Turn a template plus the live state of one session into HUD text.

    ``resolve`` and ``resolve_label`` never raise; a failure in a single token
    substitutes that token's fallback and a failure of the whole pass yields an
    empty string. Evaluator exceptions are logged at debug level, throttled per
    token so a broken state source does not flood the log on every refresh.
    """

    def __init__(
        self,
        state: HostState,
        rotation: RotatingMessageList,
        roles: RoleCatalog,
        rotation_interval: float = 5.0,
        tokens: Optional[Mapping[str, TokenSpec]] = None,
    ) -> None:
        self._state = state
        self._rotation = rotation
        self._roles = roles
        self.rotation_interval = float(rotation_interval)
        self._tokens = dict(TOKENS if tokens is None else tokens)
        self._failure_lock = threading.Lock()
        self._failure_log_at: Dict[str, float] = {}
        self._failure_suppressed: Dict[str, int] = {}

    @property
    def rotation(self) -> RotatingMessageList:
        return self._rotation

    @property
    def roles(self) -> RoleCatalog:
        return self._roles

    # Public API ---------------------------------------------------------

    def resolve_label(self, label: LabelSpec, session: Optional[SessionView], *, now: Optional[float] = None) -> str:
        """Resolve ``label.template`` for ``session`` honouring the spectator-only flag."""

        try:
            if session is None:
                return ""
            if label.only_spectator and not is_spectator_role(session.role):
                return ""
            return self.resolve(label.template, session, now=now)
        except Exception as exc:
            self._note_failure("<label>", exc)
            return ""

    def resolve(self, template: str, session: SessionView, *, now: Optional[float] = None) -> str:
        if not template:
            return ""
        try:
            ctx = TokenContext(
                session=session,
                state=self._state,
                rotation=self._rotation,
                roles=self._roles,
                rotation_interval=self.rotation_interval,
                now=now,
            )
            return _PARAM_PATTERN.sub(lambda match: self._substitute(match, ctx), template)
        except Exception as exc:
            self._note_failure("<resolve>", exc)
            return ""

    # Implementation details --------------------------------------------

    def _substitute(self, match: "re.Match[str]", ctx: TokenContext) -> str:
        name = match.group(1).lower()
        spec = self._tokens.get(name)
        if spec is None:
            return match.group(0)
        result = self._evaluate(name, spec, ctx)
        if result.ok:
            return result.value  # type: ignore[return-value]
        return match.group(0) if spec.fallback is None else spec.fallback

    def _evaluate(self, name: str, spec: TokenSpec, ctx: TokenContext) -> TokenResult:
        try:
            result = spec.evaluate(ctx)
        except Exception as exc:
            self._note_failure(name, exc)
            return TokenResult.unavailable(f"{type(exc).__name__}: {exc}")
        if result is None:
            result = TokenResult.unavailable("evaluator returned nothing")
        if not result.ok:
            self._note_failure(name, result.reason or "no value")
        return result

    def _note_failure(self, name: str, problem: Union[str, BaseException]) -> None:
        """Log a failed or unavailable placeholder at debug level, at most once per interval per token.

        ``problem`` is either the exception an evaluator raised (logged with its
        traceback) or the reason it gave for having no value.
        """

        now = time.monotonic()
        with self._failure_lock:
            last = self._failure_log_at.get(name)
            if last is not None and now - last < _FAILURE_LOG_INTERVAL:
                self._failure_suppressed[name] = self._failure_suppressed.get(name, 0) + 1
                return
            suppressed = self._failure_suppressed.pop(name, 0)
            self._failure_log_at[name] = now
        exc_info = problem if isinstance(problem, BaseException) else None
        verb = "failed" if exc_info is not None else "fell back"
        if suppressed:
            LOGGER.debug(
                "Placeholder %s %s: %s [%d more suppressed]",
                name,
                verb,
                problem,
                suppressed,
                exc_info=exc_info,
            )
        else:
            LOGGER.debug("Placeholder %s %s: %s", name, verb, problem, exc_info=exc_info)
