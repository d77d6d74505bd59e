"""
Order matching: resolve a loosely-structured identifier to one order.

Strategies are tried in order; the first strategy that yields any candidate
decides the outcome:

1. the token equals a canonical identity field (order token / legacy order
   id / invoice number);
2. the token equals the legacy ``orderNumber`` alias;
3. suffix match: a stored identity value in ``email_token`` form whose
   trailing segment equals the token.

One candidate is a match. More than one is ambiguous and is never resolved by
picking the first. No candidate at all is not-found.

Pure: no I/O, no mutation of the inputs.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Callable, Generic, List, Mapping, Optional, Sequence, Tuple, TypeVar

from .errors import AmbiguousOrderError, OrderNotFoundError
from .identifiers import OrderId, normalize_email, strip_email_prefix
from .order import OrderRecord

T = TypeVar("T")

AliasFn = Callable[[T], Mapping[str, str]]

_CANONICAL_FIELDS: Tuple[str, ...] = ("orderToken", "orderId", "id", "invoiceNumber")
_LEGACY_FIELDS: Tuple[str, ...] = ("orderNumber",)


class MatchStatus(str, Enum):
    FOUND = "found"
    NOT_FOUND = "not_found"
    AMBIGUOUS = "ambiguous"


@dataclass(frozen=True, slots=True)
class MatchResult(Generic[T]):
    status: MatchStatus
    item: Optional[T] = None
    index: int = -1
    strategy: str = ""
    candidate_count: int = 0
    candidate_indexes: Tuple[int, ...] = ()

    @property
    def found(self) -> bool:
        return self.status is MatchStatus.FOUND


def record_aliases(order: OrderRecord) -> Mapping[str, str]:
    """Identity values of a canonical `OrderRecord`."""

    values = {"orderToken": order.order_token, "clientEmail": order.client_email}
    if order.invoice_number:
        values["invoiceNumber"] = order.invoice_number
    if order.order_number:
        values["orderNumber"] = order.order_number
    return values


def _belongs_to(order_id: OrderId, aliases: Mapping[str, str]) -> bool:
    if order_id.client_email is None:
        return True
    owner = aliases.get("clientEmail")
    return not owner or normalize_email(owner) == order_id.client_email


def _equals(order_id: OrderId, fields: Sequence[str]) -> Callable[[Mapping[str, str]], bool]:
    wanted = {order_id.order_token, order_id.serialize()}

    def predicate(aliases: Mapping[str, str]) -> bool:
        return any(aliases.get(f) in wanted for f in fields)

    return predicate


def _suffix(order_id: OrderId) -> Callable[[Mapping[str, str]], bool]:
    def predicate(aliases: Mapping[str, str]) -> bool:
        for name, value in aliases.items():
            if name == "clientEmail":
                continue
            if strip_email_prefix(value) == order_id.order_token:
                return True
        return False

    return predicate


def match(order_id: OrderId, scope: Sequence[T], aliases: AliasFn = record_aliases) -> MatchResult[T]:
    """
    Match `order_id` against `scope`.

    Args:
        order_id: parsed identifier
        scope: candidate orders (canonical records or raw embedded snapshots)
        aliases: returns the identity values of one candidate

    Returns:
        MatchResult with status FOUND, NOT_FOUND or AMBIGUOUS
    """

    owned: List[Tuple[int, T, Mapping[str, str]]] = []
    for index, item in enumerate(scope):
        values = aliases(item)
        if _belongs_to(order_id, values):
            owned.append((index, item, values))

    strategies = (
        ("canonical", _equals(order_id, _CANONICAL_FIELDS)),
        ("legacy_alias", _equals(order_id, _LEGACY_FIELDS)),
        ("suffix", _suffix(order_id)),
    )

    for name, predicate in strategies:
        hits = [(index, item) for index, item, values in owned if predicate(values)]
        if len(hits) == 1:
            index, item = hits[0]
            return MatchResult(MatchStatus.FOUND, item=item, index=index, strategy=name, candidate_count=1)
        if len(hits) > 1:
            return MatchResult(
                MatchStatus.AMBIGUOUS,
                strategy=name,
                candidate_count=len(hits),
                candidate_indexes=tuple(index for index, _ in hits),
            )

    return MatchResult(MatchStatus.NOT_FOUND)


def resolve(
    order_id: OrderId,
    scope: Sequence[T],
    aliases: AliasFn = record_aliases,
    *,
    scope_name: str = "canonical",
) -> MatchResult[T]:
    """
    Like `match`, but raises on anything other than exactly one match.

    Raises:
        OrderNotFoundError: zero matches
        AmbiguousOrderError: more than one match
    """

    result = match(order_id, scope, aliases)
    if result.status is MatchStatus.NOT_FOUND:
        raise OrderNotFoundError(order_id.serialize(), scope_name)
    if result.status is MatchStatus.AMBIGUOUS:
        candidates = []
        for index in result.candidate_indexes:
            values = aliases(scope[index])
            candidates.append(values.get("orderToken") or values.get("orderId") or values.get("invoiceNumber") or "?")
        raise AmbiguousOrderError(order_id.serialize(), candidates)
    return result


__all__ = ["MatchStatus", "MatchResult", "match", "resolve", "record_aliases"]
