"""
Domain layer containing core business logic and domain services.

Submodules:
- entitlement: Ledger, access resolver and pricing for gated content.
- live: Live broadcast sessions (access gate, presence, chat, leaderboard).
- utils: Domain-specific utilities (e.g., ID generation).
"""
