"""
drumline.authority
~~~~~~~~~~~~~~~~~~
Long-lived owner of the rule store.  Tracks the hostname of the active
document, answers the panel, applies rule mutations and decides when a
page must be blocked.  Decisions are plain values; the effect dispatcher
performs them.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from .codec import (
    BLOCKED_KEY,
    CATEGORIES,
    DAILY_BLOCK_TIMES_KEY,
    decode_rules,
    encode_blocked,
    encode_daily,
)
from .effects import BlockPage, Decision, Effect, EffectDispatcher, NotifyUser, Persist, PushToPanel
from .errors import PreconditionError, ProtocolError, StorageError, ValidationError
from .logger import DrumlineLogger
from .protocol import Category, Envelope
from .rules import Rule, RuleStore, normalize_hostname
from .storage import PersistenceAdapter
from .timewindows import parse_windows


def decide_navigation(store: RuleStore, hostname: str, now: datetime) -> Decision:
    rule = store.get(hostname)
    blocked = store.is_blocked_now(hostname, now)
    effects: List[Effect] = []
    if blocked:
        effects.append(BlockPage(hostname, _reason(rule)))
        effects.append(PushToPanel(Category.HOSTNAME_IS_BLOCKED, _panel_payload(rule)))
    else:
        effects.append(PushToPanel(Category.HOSTNAME_IS_NOT_BLOCKED))
    return Decision(hostname, blocked, rule, effects)


def _reason(rule: Optional[Rule]) -> str:
    return "indefinite" if rule and rule.indefinite_block else "daily_times"


def _panel_payload(rule: Optional[Rule]) -> Dict[str, Any]:
    payload = rule.to_payload() if rule else {}
    return {"dailyBlockTimes": payload["dailyBlockTimes"]} if "dailyBlockTimes" in payload else {}


class AuthorityService:
    def __init__(
        self,
        storage: PersistenceAdapter,
        dispatcher: EffectDispatcher,
        logger: DrumlineLogger,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self.storage = storage
        self.dispatcher = dispatcher
        self.logger = logger
        self.clock = clock
        self.store = RuleStore()
        self.active_hostname: Optional[str] = None

    async def initialize(self) -> None:
        """Rebuild the store from persisted data; called once at startup."""
        rules: Dict[str, Rule] = {}
        for key in CATEGORIES:
            try:
                decoded = decode_rules({key: await self.storage.load(key)})
            except (StorageError, ValidationError) as e:
                self.logger.storage_fail(key, e.msg)
                await self.dispatcher.dispatch(
                    [NotifyUser("Storage warning", f"Could not load {key}: {e.msg}")]
                )
                continue
            # categories populate disjoint fields
            for hostname, rule in decoded.items():
                merged = rules.setdefault(hostname, Rule())
                merged.indefinite_block = merged.indefinite_block or rule.indefinite_block
                merged.windows = merged.windows or rule.windows
        self.store.load(rules)

    # ------------------------------------------------------------------ #
    # host environment signals
    # ------------------------------------------------------------------ #

    async def on_navigation(self, url: str) -> Decision:
        hostname = self._activate(url)
        if not hostname:
            raise ProtocolError(f"Navigation without a hostname: {url!r}")
        decision = decide_navigation(self.store, hostname, self.clock())
        self.logger.navigation(hostname, decision.blocked)
        await self.dispatcher.dispatch(decision.effects)
        return decision

    async def on_activation(self, url: Optional[str]) -> None:
        """The user switched to an already-loaded document."""
        if not url:
            self.active_hostname = None
            return
        hostname = self._activate(url)
        if hostname and self.store.is_blocked_now(hostname, self.clock()):
            rule = self.store.get(hostname)
            await self.dispatcher.dispatch(
                [PushToPanel(Category.HOSTNAME_IS_BLOCKED, _panel_payload(rule))]
            )

    # ------------------------------------------------------------------ #
    # panel messages
    # ------------------------------------------------------------------ #

    async def handle(self, envelope: Envelope) -> Optional[Dict[str, Any]]:
        hostname = self.active_hostname
        if not hostname:
            self.logger.protocol_error(f"{envelope.category} with no active hostname")
            raise ProtocolError("Current hostname is undefined")

        category = envelope.category
        if category == Category.IS_HOSTNAME_BLOCKED:
            return self.is_hostname_blocked(hostname)

        try:
            effects = self._mutate(hostname, envelope)
        except PreconditionError as e:
            self.logger.precondition_fail(e.hostname, e.action)
            raise
        except ValidationError as e:
            await self.dispatcher.dispatch([NotifyUser("Input error", e.msg)])
            raise
        await self.dispatcher.dispatch(effects)
        return None

    def is_hostname_blocked(self, hostname: str) -> Dict[str, Any]:
        rule = self.store.get(hostname)
        blocked = self.store.is_blocked_now(hostname, self.clock())
        return {"answer": "yes" if blocked else "no", "rule": rule.to_payload() if rule else None}

    # ------------------------------------------------------------------ #
    # private
    # ------------------------------------------------------------------ #

    def _activate(self, url: Optional[str]) -> Optional[str]:
        if url is not None and not isinstance(url, str):
            raise ProtocolError(f"URL must be a string, got {type(url).__name__}")
        try:
            hostname = normalize_hostname(url or "")
        except ValueError as e:
            raise ProtocolError(f"Cannot parse URL {url!r}: {e}") from e
        self.active_hostname = hostname or None
        return self.active_hostname

    def _mutate(self, hostname: str, envelope: Envelope) -> List[Effect]:
        category = envelope.category
        if category == Category.BLOCK_INDEFINITELY:
            rule = self.store.set_indefinite_block(hostname)
            key = BLOCKED_KEY
        elif category == Category.BLOCK_AT_DAILY_TIMES:
            times = envelope.payload.get("times")
            if not isinstance(times, str):
                raise ValidationError("Daily block times are missing")
            rule = self.store.set_windows(hostname, parse_windows(times))
            key = DAILY_BLOCK_TIMES_KEY
        elif category == Category.UNBLOCK:
            rule = self.store.clear_indefinite_block(hostname)
            key = BLOCKED_KEY
        elif category == Category.DELETE_DAILY_BLOCK_RULE:
            rule = self.store.clear_windows(hostname)
            key = DAILY_BLOCK_TIMES_KEY
        else:
            self.logger.protocol_error(f"Unknown message category: {category}")
            raise ProtocolError(f"Unknown message category: {category}")

        self.logger.rule_changed(hostname, category, rule.to_payload() if rule else None)
        effects: List[Effect] = []
        if self.store.is_blocked_now(hostname, self.clock()):
            effects.append(BlockPage(hostname, _reason(rule)))
        effects.append(self._snapshot(key))
        return effects

    def _snapshot(self, key: str) -> Persist:
        if key == BLOCKED_KEY:
            return Persist(key, encode_blocked(self.store.indefinitely_blocked()))
        return Persist(key, encode_daily(self.store.daily_windows()))
