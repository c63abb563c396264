"""Entitlement ledger: the viewer's subscriptions and one-time purchases."""

from collections.abc import Iterable, Mapping
from datetime import datetime, timezone
from types import MappingProxyType

from loguru import logger

from fanlive.schemas import SubscriptionRecord, SubscriptionStatus

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


class EntitlementLedger:
    """Immutable snapshot of what one viewer has paid for.

    Subscriptions are keyed by creator id, purchases by content id. Updates
    never mutate a snapshot; they produce a new one.
    """

    __slots__ = ("_subscriptions", "_purchases")

    def __init__(
        self,
        subscriptions: Mapping[str, SubscriptionRecord] | None = None,
        purchases: Iterable[str] | None = None,
    ):
        self._subscriptions = MappingProxyType(dict(subscriptions or {}))
        self._purchases = frozenset(purchases or ())

    @classmethod
    def empty(cls) -> "EntitlementLedger":
        return cls()

    @classmethod
    def from_records(
        cls,
        subscriptions: Iterable[SubscriptionRecord],
        purchase_ids: Iterable[str],
    ) -> "EntitlementLedger":
        """Build a ledger from backend rows.

        EXPIRED rows are dropped. If the backend returns several rows for the
        same creator, the ACTIVE one wins, then the one ending last.
        """
        by_creator: dict[str, SubscriptionRecord] = {}
        for sub in subscriptions:
            if sub.status == SubscriptionStatus.EXPIRED:
                continue
            current = by_creator.get(sub.creator_id)
            if current is None:
                by_creator[sub.creator_id] = sub
                continue
            logger.warning(
                f"Multiple live subscriptions for fan {sub.fan_id} and creator {sub.creator_id}: "
                f"{current.id}, {sub.id}"
            )
            if _rank(sub) > _rank(current):
                by_creator[sub.creator_id] = sub
        return cls(by_creator, purchase_ids)

    @property
    def subscriptions(self) -> Mapping[str, SubscriptionRecord]:
        return self._subscriptions

    @property
    def purchases(self) -> frozenset[str]:
        return self._purchases

    def subscription_for(self, creator_id: str) -> SubscriptionRecord | None:
        return self._subscriptions.get(creator_id)

    def has_purchase(self, content_id: str) -> bool:
        return content_id in self._purchases

    def with_purchase(self, content_id: str) -> "EntitlementLedger":
        if content_id in self._purchases:
            return self
        return EntitlementLedger(self._subscriptions, self._purchases | {content_id})

    def __repr__(self) -> str:
        return (
            f"EntitlementLedger(subscriptions={len(self._subscriptions)}, "
            f"purchases={len(self._purchases)})"
        )


def _rank(sub: SubscriptionRecord) -> tuple[bool, datetime]:
    return (sub.status == SubscriptionStatus.ACTIVE, sub.end_date or _EPOCH)


class LedgerStore:
    """Holds the current ledger snapshot for one viewing session.

    All writers go through `replace` (refresh) or `add_purchase`
    (purchase confirmed). Both swap the whole snapshot at once.
    """

    def __init__(self, ledger: EntitlementLedger | None = None):
        self._ledger = ledger or EntitlementLedger.empty()
        self._version = 0

    @property
    def snapshot(self) -> EntitlementLedger:
        return self._ledger

    @property
    def version(self) -> int:
        return self._version

    def replace(self, ledger: EntitlementLedger) -> EntitlementLedger:
        self._ledger = ledger
        self._version += 1
        return ledger

    def add_purchase(self, content_id: str) -> EntitlementLedger:
        updated = self._ledger.with_purchase(content_id)
        if updated is not self._ledger:
            self._ledger = updated
            self._version += 1
        return self._ledger

    def clear(self) -> None:
        self.replace(EntitlementLedger.empty())
