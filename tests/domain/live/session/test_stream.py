"""Tests for StreamControl."""

from unittest.mock import AsyncMock

import pytest

from fanlive.domain.live.session._stream import StreamControl
from fanlive.schemas import LiveAccessConfig
from fanlive.services.realtime import EVENT_STREAM_END
from fanlive.shared.errors import AppError, AppErrorCode
from tests.fixtures.live_fixtures import CREATOR_ID


class TestConfigureAccess:
    async def test_configure_while_offline(self, backend):
        # Arrange
        control = StreamControl(backend, CREATOR_ID)
        await backend.update_live_profile(CREATOR_ID, LiveAccessConfig(), is_live=False)

        # Act
        profile = await control.configure_access(LiveAccessConfig(required_tier_id="t_vip"))

        # Assert
        assert profile.access.required_tier_id == "t_vip"
        assert profile.is_live is False

    async def test_configure_while_live_rejected(self, backend):
        control = StreamControl(backend, CREATOR_ID)
        with pytest.raises(AppError) as exc_info:
            await control.configure_access(LiveAccessConfig(requires_subscription=False))
        assert exc_info.value.errcode == AppErrorCode.E_INVALID_STATE
        assert backend.profiles[CREATOR_ID].access.requires_subscription is True


class TestGoLive:
    async def test_go_live_from_offline(self, backend):
        await backend.update_live_profile(CREATOR_ID, LiveAccessConfig(), is_live=False)
        control = StreamControl(backend, CREATOR_ID)

        profile = await control.go_live(LiveAccessConfig(requires_subscription=False))

        assert profile.is_live is True
        assert profile.access.requires_subscription is False

    async def test_go_live_twice_rejected(self, backend):
        control = StreamControl(backend, CREATOR_ID)
        with pytest.raises(AppError) as exc_info:
            await control.go_live()
        assert exc_info.value.errcode == AppErrorCode.E_INVALID_STATE
        assert "allowed from: offline" in exc_info.value.errmesg


class TestEndStream:
    async def test_end_stream_broadcasts_then_clears(self, backend):
        # Arrange
        await backend.insert_chat_message(CREATOR_ID, "u.fan", "Fan", None, "hi")
        channel = AsyncMock()
        control = StreamControl(backend, CREATOR_ID)

        # Act
        await control.end_stream(channel)

        # Assert
        channel.send_broadcast.assert_awaited_once_with(EVENT_STREAM_END)
        assert backend.profiles[CREATOR_ID].is_live is False
        assert await backend.get_chat_history(CREATOR_ID, 100) == []

    async def test_end_stream_goes_offline_when_broadcast_fails(self, backend):
        channel = AsyncMock()
        channel.send_broadcast.side_effect = RuntimeError("socket closed")
        control = StreamControl(backend, CREATOR_ID)

        await control.end_stream(channel)

        assert backend.profiles[CREATOR_ID].is_live is False

    async def test_end_stream_when_offline_rejected(self, backend):
        await backend.update_live_profile(CREATOR_ID, LiveAccessConfig(), is_live=False)
        control = StreamControl(backend, CREATOR_ID)
        with pytest.raises(AppError) as exc_info:
            await control.end_stream(AsyncMock())
        assert "allowed from: live" in exc_info.value.errmesg

