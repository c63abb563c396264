"""Example: A live session in DEMO_MODE (in-memory backend and realtime hub).

This script walks through a creator going live for subscribers of one tier,
a locked viewer seeing the upgrade prompt, a subscriber chatting and tipping,
and the creator ending the stream.

Prerequisites:
    1. Install the package: pip install -e .
    2. Keep DEMO_MODE=true (the default in env.example)

Run:
    python examples/live_session_example.py
"""

import asyncio
from datetime import timedelta
from decimal import Decimal

from fanlive.domain.entitlement import EntitlementService
from fanlive.domain.live.session.session_domain import LiveSessionCoordinator
from fanlive.schemas import (
    CreatorLiveProfile,
    LiveAccessConfig,
    SubscriptionRecord,
    SubscriptionStatus,
    TierDefinition,
)
from fanlive.services.backend import get_backend
from fanlive.services.realtime import get_channel_factory
from fanlive.shared.log import init_logger
from fanlive.shared.timeutils import utc_now

CREATOR = "u.creator"


async def main():
    init_logger()
    backend = get_backend()
    channels = get_channel_factory()

    backend.add_tier(TierDefinition(id="t_fan", creator_id=CREATOR, name="Fan", price=Decimal("4.99")))
    backend.add_tier(
        TierDefinition(id="t_inner", creator_id=CREATOR, name="Inner circle", price=Decimal("14.99"), position=1)
    )
    backend.add_profile(CreatorLiveProfile(creator_id=CREATOR, playback_id="pb_demo"))
    backend.add_subscription(
        SubscriptionRecord(
            id="sb_demo",
            fan_id="u.alice",
            creator_id=CREATOR,
            tier_id="t_inner",
            status=SubscriptionStatus.ACTIVE,
            price=Decimal("14.99"),
            end_date=utc_now() + timedelta(days=30),
        )
    )

    def session(viewer_id, name):
        return LiveSessionCoordinator(
            backend, channels, CREATOR, EntitlementService(backend, viewer_id), display_name=name
        )

    print("1. Creator goes live for the Inner circle tier")
    streamer = session(CREATOR, "Creator")
    await streamer.stream_control.go_live(LiveAccessConfig(required_tier_id="t_inner"))
    await streamer.join()

    print("\n2. A viewer on no tier is locked out")
    bob = session("u.bob", "Bob")
    snapshot = await bob.join()
    print(f"   phase={snapshot.phase} prompt={snapshot.unlock_prompt.label}")

    print("\n3. A subscriber joins, chats and tips")
    alice = session("u.alice", "Alice")
    await alice.join()
    await alice.send_chat("hello!")
    backend.record_tip(CREATOR, "u.alice", "Alice", Decimal("5"))
    await alice.send_tip_message(Decimal("5"), "great stream")
    snapshot = streamer.snapshot()
    print(f"   viewers={snapshot.viewer_count} messages={[m.content for m in snapshot.messages]}")
    print(f"   leaderboard={[(t.display_name, str(t.total_tipped)) for t in snapshot.leaderboard]}")

    print("\n4. Creator ends the stream")
    await streamer.end_stream()
    print(f"   alice phase={alice.phase} creator live={backend.profiles[CREATOR].is_live}")

    await bob.leave()
    print("\nExample completed!")


if __name__ == "__main__":
    asyncio.run(main())
