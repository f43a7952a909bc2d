"""Rate governor: local accounting of requests, comments and posts per profile.

Windows (inclusive of ``now - window``):
    request  60 s      at most 100
    comment  3600 s    at most 50
    post     1800 s    at most 1 (cool-down after the last post)

A server-supplied retry-after for an action overrides local accounting until
it expires. Recording a post or a comment also records a request.

The functions below are pure over an explicit ``RateStore`` value and an
injected ``now`` (ms since epoch). ``RateGovernor`` binds them to a JSON file:
load → prune → operate → atomic save.
"""

from __future__ import annotations

import math
import time
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field, replace
from typing import Any, Optional

from safegate.constants import (
    COMMENT_WINDOW_MS,
    COMMENTS_PER_HOUR,
    POST_COOLDOWN_MS,
    REQUEST_WINDOW_MS,
    REQUESTS_PER_MIN,
)
from safegate.models.decision import RateAction, RateDecision
from safegate.store.json_file import read_json, write_json_atomic
from safegate.utils.logger import get_logger

logger = get_logger(__name__)

RATE_ACTIONS: tuple[str, ...] = ("request", "comment", "post")

REASON_REQUESTS = f"rate limit: {REQUESTS_PER_MIN} requests/min"
REASON_COMMENTS = f"rate limit: {COMMENTS_PER_HOUR} comments/hour"
REASON_POSTS = "rate limit: 1 post/30min"


def server_retry_reason(action: str) -> str:
    return f"server retry_after for {action}"


def now_ms() -> int:
    return int(time.time() * 1000)


# ─── State ────────────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class RateState:
    """Recent action timestamps (ms) for one profile, oldest first."""

    requests: tuple[int, ...] = ()
    comments: tuple[int, ...] = ()
    posts: tuple[int, ...] = ()
    blocked_until: Mapping[str, int] = field(default_factory=dict)

    @property
    def empty(self) -> bool:
        return not (self.requests or self.comments or self.posts or self.blocked_until)

    @classmethod
    def from_dict(cls, raw: Any) -> Optional["RateState"]:
        if not isinstance(raw, dict):
            return None

        def stamps(key: str) -> tuple[int, ...]:
            values = raw.get(key) or []
            if not isinstance(values, list):
                return ()
            return tuple(sorted(int(v) for v in values if _is_number(v)))

        blocked_raw = raw.get("blocked_until") or {}
        blocked = {
            str(action): int(until)
            for action, until in (blocked_raw.items() if isinstance(blocked_raw, dict) else ())
            if _is_number(until)
        }
        return cls(
            requests=stamps("requests"),
            comments=stamps("comments"),
            posts=stamps("posts"),
            blocked_until=blocked,
        )

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "requests": list(self.requests),
            "comments": list(self.comments),
            "posts": list(self.posts),
        }
        if self.blocked_until:
            data["blocked_until"] = dict(self.blocked_until)
        return data


RateStore = dict[str, RateState]


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and math.isfinite(value)


# ─── Pure operations ─────────────────────────────────────────────────────────


def _within(stamps: tuple[int, ...], window_ms: int, now: int) -> tuple[int, ...]:
    cutoff = now - window_ms
    return tuple(t for t in stamps if t >= cutoff)


def prune_state(state: RateState, now: int) -> RateState:
    """Drop timestamps outside their window and expired retry-after entries."""
    return RateState(
        requests=_within(state.requests, REQUEST_WINDOW_MS, now),
        comments=_within(state.comments, COMMENT_WINDOW_MS, now),
        posts=_within(state.posts, POST_COOLDOWN_MS, now),
        blocked_until={action: until for action, until in state.blocked_until.items() if until > now},
    )


def prune_store(store: RateStore, now: int) -> RateStore:
    """Return a pruned copy of ``store``; profiles left empty are dropped."""
    pruned: RateStore = {}
    for profile, state in store.items():
        next_state = prune_state(state, now)
        if not next_state.empty:
            pruned[profile] = next_state
    return pruned


def check_rate_limit(store: RateStore, profile: str, action: RateAction, now: int) -> RateDecision:
    """Decide whether ``action`` may run for ``profile`` at ``now``. Does not record anything."""
    state = prune_state(store.get(profile, RateState()), now)

    blocked = state.blocked_until.get(action)
    if blocked is not None and blocked > now:
        return RateDecision(allowed=False, wait_ms=blocked - now, reason=server_retry_reason(action))

    if action == "request":
        if len(state.requests) >= REQUESTS_PER_MIN:
            wait = min(state.requests) + REQUEST_WINDOW_MS - now
            return RateDecision(allowed=False, wait_ms=max(1, wait), reason=REASON_REQUESTS)
        return RateDecision(allowed=True)

    if action == "comment":
        if len(state.comments) >= COMMENTS_PER_HOUR:
            wait = min(state.comments) + COMMENT_WINDOW_MS - now
            return RateDecision(allowed=False, wait_ms=max(1, wait), reason=REASON_COMMENTS)
        return RateDecision(allowed=True)

    if state.posts:
        wait = max(state.posts) + POST_COOLDOWN_MS - now
        if wait > 0:
            return RateDecision(allowed=False, wait_ms=wait, reason=REASON_POSTS)
    return RateDecision(allowed=True)


def record_action(store: RateStore, profile: str, action: RateAction, now: int) -> RateStore:
    """Return a new store with ``action`` recorded at ``now`` (posts/comments also count as requests)."""
    if action not in RATE_ACTIONS:
        raise ValueError(f"unknown rate action: {action!r}")
    next_store = prune_store(store, now)
    state = next_store.get(profile, RateState())
    state = replace(state, requests=state.requests + (now,))
    if action == "comment":
        state = replace(state, comments=state.comments + (now,))
    elif action == "post":
        state = replace(state, posts=state.posts + (now,))
    next_store[profile] = state
    return next_store


def apply_server_retry_after(
    store: RateStore,
    profile: str,
    action: RateAction,
    retry_after_seconds: float,
    now: int,
) -> RateStore:
    """Return a new store blocking ``action`` until ``now + retry_after_seconds``."""
    next_store = prune_store(store, now)
    state = next_store.get(profile, RateState())
    blocked = dict(state.blocked_until)
    blocked[action] = now + int(math.ceil(max(0.0, retry_after_seconds) * 1000))
    next_store[profile] = replace(state, blocked_until=blocked)
    return next_store


def extract_retry_after_seconds(body: Any) -> Optional[float]:
    """Pull a retry-after hint (seconds) out of a server error body.

    Understands ``retry_after_seconds``, ``retry_after_minutes`` and
    ``retry_after``. Numeric values take precedence over numeric strings.
    """
    if not isinstance(body, Mapping):
        return None

    keys = (("retry_after_seconds", 1), ("retry_after_minutes", 60), ("retry_after", 1))
    for key, multiplier in keys:
        value = body.get(key)
        if _is_number(value):
            return float(value) * multiplier
    for key, multiplier in keys:
        value = body.get(key)
        if isinstance(value, str):
            try:
                parsed = float(value.strip())
            except ValueError:
                continue
            if math.isfinite(parsed):
                return parsed * multiplier
    return None


# ─── Persistence ──────────────────────────────────────────────────────────────


def load_rate_store(path: str) -> RateStore:
    raw = read_json(path, default={})
    if not isinstance(raw, dict):
        return {}
    store: RateStore = {}
    for profile, state_raw in raw.items():
        state = RateState.from_dict(state_raw)
        if state is not None:
            store[str(profile)] = state
    return store


def save_rate_store(path: str, store: RateStore) -> None:
    write_json_atomic(path, {profile: state.to_dict() for profile, state in store.items()})


class RateGovernor:
    """File-backed rate governor for a single state root.

    Args:
        path:  rate_limits.json location.
        clock: Returns "now" in ms since epoch; injectable for tests.
    """

    def __init__(self, path: str, clock: Optional[Callable[[], int]] = None) -> None:
        self.path = path
        self.clock = clock or now_ms

    def _load(self, now: int) -> RateStore:
        return prune_store(load_rate_store(self.path), now)

    def check(self, profile: str, action: RateAction) -> RateDecision:
        now = self.clock()
        store = self._load(now)
        save_rate_store(self.path, store)
        decision = check_rate_limit(store, profile, action, now)
        if not decision.allowed:
            logger.info(
                "Rate limit denial",
                profile=profile,
                action=action,
                wait_ms=decision.wait_ms,
                reason=decision.reason,
            )
        return decision

    def record(self, profile: str, action: RateAction) -> None:
        now = self.clock()
        save_rate_store(self.path, record_action(self._load(now), profile, action, now))

    def apply_retry_after(self, profile: str, action: RateAction, retry_after_seconds: float) -> None:
        now = self.clock()
        save_rate_store(
            self.path,
            apply_server_retry_after(self._load(now), profile, action, retry_after_seconds, now),
        )
        logger.warning(
            "Server retry-after applied",
            profile=profile,
            action=action,
            retry_after_seconds=retry_after_seconds,
        )

    def state(self, profile: str) -> RateState:
        return self._load(self.clock()).get(profile, RateState())
