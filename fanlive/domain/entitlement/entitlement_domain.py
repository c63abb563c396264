"""Entitlement service - ledger refresh and subscription actions for one viewer."""

import asyncio

from loguru import logger

from fanlive.schemas import ContentItem, PurchaseRecord, SubscriptionRecord, TierDefinition
from fanlive.services.backend import LiveBackend
from fanlive.shared.errors import AppError, AppErrorCode, HttpStatusCode, format_error

from .entitlement_models import AccessDecision, NegotiationResult
from .ledger import EntitlementLedger, LedgerStore
from .pricing import negotiate
from .resolver import resolve


class EntitlementService:
    """Owns the ledger of one viewing session.

    The resolver and negotiator stay pure; this service only feeds them the
    current snapshot and keeps that snapshot in sync with the backend.
    """

    def __init__(
        self,
        backend: LiveBackend,
        viewer_id: str | None,
        store: LedgerStore | None = None,
    ):
        self._backend = backend
        self.viewer_id = viewer_id or None
        self.store = store or LedgerStore()

    @property
    def ledger(self) -> EntitlementLedger:
        return self.store.snapshot

    # ==================== LEDGER ====================

    async def refresh(self) -> EntitlementLedger:
        """Re-fetch subscriptions and purchases and swap the ledger wholesale.

        On failure the ledger is cleared, so every gated item is denied until
        the next successful refresh.
        """
        if not self.viewer_id:
            return self.store.replace(EntitlementLedger.empty())

        try:
            subscriptions, purchase_ids = await asyncio.gather(
                self._backend.get_user_subscriptions(self.viewer_id),
                self._backend.get_paid_content_ids(self.viewer_id),
            )
        except AppError as e:
            logger.warning(
                f"Entitlement refresh failed for {self.viewer_id}, clearing ledger: {e.errmesg}"
            )
            self.store.clear()
            return self.store.snapshot
        except Exception as e:
            logger.error(
                f"Entitlement refresh failed for {self.viewer_id}, clearing ledger: {format_error(e)}"
            )
            self.store.clear()
            return self.store.snapshot

        ledger = self.store.replace(EntitlementLedger.from_records(subscriptions, purchase_ids))
        logger.debug(f"Ledger refreshed for {self.viewer_id}: {ledger!r} (v{self.store.version})")
        return ledger

    def apply_purchase(self, record: PurchaseRecord) -> EntitlementLedger:
        """Record a confirmed one-time purchase. A repeated purchase is a no-op."""
        if record.user_id != self.viewer_id:
            raise AppError(
                errcode=AppErrorCode.E_INVALID_REQUEST,
                errmesg=f"Purchase belongs to {record.user_id}, not {self.viewer_id}",
                status_code=HttpStatusCode.BAD_REQUEST,
            )
        return self.store.add_purchase(record.content_id)

    # ==================== DECISIONS ====================

    def check_access(self, content: ContentItem) -> AccessDecision:
        return resolve(content, self.viewer_id, self.store.snapshot)

    def quote(self, target_tier: TierDefinition) -> NegotiationResult:
        """Price of subscribing to / switching to `target_tier` from the current ledger."""
        if self.viewer_id and target_tier.creator_id == self.viewer_id:
            raise AppError(
                errcode=AppErrorCode.E_INVALID_REQUEST,
                errmesg="Creators cannot subscribe to their own tiers",
                status_code=HttpStatusCode.BAD_REQUEST,
            )
        current = self.store.snapshot.subscription_for(target_tier.creator_id)
        return negotiate(target_tier, current)

    # ==================== SUBSCRIPTION ACTIONS ====================

    def _require_viewer(self) -> str:
        if not self.viewer_id:
            raise AppError(
                errcode=AppErrorCode.E_UNAUTHORIZED,
                errmesg="Sign in required",
                status_code=HttpStatusCode.UNAUTHORIZED,
            )
        return self.viewer_id

    async def cancel_subscription(self, subscription_id: str) -> SubscriptionRecord:
        """Cancel auto-renewal. Access stays valid until the subscription's end date."""
        viewer_id = self._require_viewer()
        updated = await self._backend.cancel_subscription(subscription_id, viewer_id)
        logger.info(f"Subscription {subscription_id} canceled by {viewer_id}, valid until {updated.end_date}")
        await self.refresh()
        return updated

    async def resume_subscription(self, subscription_id: str) -> SubscriptionRecord:
        viewer_id = self._require_viewer()
        updated = await self._backend.resume_subscription(subscription_id, viewer_id)
        logger.info(f"Subscription {subscription_id} resumed by {viewer_id}")
        await self.refresh()
        return updated
