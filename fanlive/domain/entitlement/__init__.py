"""
Entitlement domain: who may see which content.

- ledger: per-viewer snapshot of subscriptions and purchases.
- resolver: pure access decision for feed posts and live streams.
- pricing: amount payable for subscribe / upgrade / downgrade.
- entitlement_domain: service keeping the ledger in sync with the backend.
"""

from .entitlement_domain import EntitlementService
from .entitlement_models import AccessDecision, AccessReason, NegotiationKind, NegotiationResult
from .ledger import EntitlementLedger, LedgerStore
from .pricing import negotiate, to_money
from .resolver import is_subscription_valid, resolve, resolve_row

__all__ = [
    "AccessDecision",
    "AccessReason",
    "EntitlementLedger",
    "EntitlementService",
    "LedgerStore",
    "NegotiationKind",
    "NegotiationResult",
    "is_subscription_valid",
    "negotiate",
    "resolve",
    "resolve_row",
    "to_money",
]
