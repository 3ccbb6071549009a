"""
Feed matching -- resolve a feed request to an inventory feed.

Responsibility:
    Evaluates an ordered set of typed matching rules over a snapshot of the
    inventory and reports which feed (if any) a request draws down.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.  The caller loads the
    feed snapshot (ordered by ``created_at`` then ``id``) and passes it in;
    nothing here closes over shared inventory state.

Rules, highest priority first:
    EXACT_TYPE    feed.type equals an identifier (case-insensitive)
    PARTIAL_TYPE  feed.type contains an identifier
    PARTIAL_NAME  feed.name contains an identifier

    The identifiers are the request's display name and machine code.  The
    first rule with any candidate wins and its first candidate is chosen.
    More than one candidate under the winning rule is reported as ambiguous
    so callers can flag it instead of silently relying on order.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from enum import Enum
from typing import Generic, Protocol, TypeVar


class MatchableFeed(Protocol):
    name: str
    type: str


F = TypeVar("F", bound=MatchableFeed)


class MatchRule(str, Enum):
    """Typed matching rules in priority order."""

    EXACT_TYPE = "exact_type"
    PARTIAL_TYPE = "partial_type"
    PARTIAL_NAME = "partial_name"


MATCH_RULE_ORDER: tuple[MatchRule, ...] = (
    MatchRule.EXACT_TYPE,
    MatchRule.PARTIAL_TYPE,
    MatchRule.PARTIAL_NAME,
)


@dataclass(frozen=True)
class FeedMatch(Generic[F]):
    """Outcome of a successful match."""

    rule: MatchRule
    feed: F
    candidates: tuple[F, ...]

    @property
    def is_ambiguous(self) -> bool:
        return len(self.candidates) > 1


def normalize_identifiers(*identifiers: str | None) -> tuple[str, ...]:
    """Lower-case, strip and de-duplicate identifiers, dropping blanks."""
    seen: list[str] = []
    for ident in identifiers:
        if not ident:
            continue
        value = ident.strip().lower()
        if value and value not in seen:
            seen.append(value)
    return tuple(seen)


def _rule_matches(rule: MatchRule, feed: MatchableFeed, identifiers: tuple[str, ...]) -> bool:
    feed_type = (feed.type or "").strip().lower()
    feed_name = (feed.name or "").strip().lower()
    if rule is MatchRule.EXACT_TYPE:
        return bool(feed_type) and feed_type in identifiers
    if rule is MatchRule.PARTIAL_TYPE:
        return bool(feed_type) and any(i in feed_type for i in identifiers)
    return bool(feed_name) and any(i in feed_name for i in identifiers)


def match_feed(
    feeds: Sequence[F],
    identifiers: Iterable[str | None],
) -> FeedMatch[F] | None:
    """
    Return the best match for ``identifiers`` among ``feeds``, or None.

    ``feeds`` must already be in deterministic order; iteration order decides
    between candidates of the same rule.
    """
    idents = normalize_identifiers(*identifiers)
    if not idents:
        return None

    for rule in MATCH_RULE_ORDER:
        candidates = tuple(f for f in feeds if _rule_matches(rule, f, idents))
        if candidates:
            return FeedMatch(rule=rule, feed=candidates[0], candidates=candidates)
    return None
