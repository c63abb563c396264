"""REST client for the managed backend.

Tables are read and written through the REST interface (`/rest/v1/<table>`),
server-side procedures through `/rest/v1/rpc/<name>`, and payment-side
subscription changes through edge functions (`/functions/v1/<name>`).

Row-level authorization is enforced by the backend using the viewer's access
token; this client only forwards it. Confirmed chat writes are handed to a
row relay so every participant on the broadcast topic receives them.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Any

import httpx
from loguru import logger
from pydantic import ValidationError

from fanlive.schemas import (
    CreatorLiveProfile,
    LiveAccessConfig,
    LiveMessage,
    MessageKind,
    SubscriptionRecord,
    SubscriptionStatus,
    TierDefinition,
    Tipper,
)
from fanlive.services.realtime import RowEventRelay, live_topic
from fanlive.shared.errors import AppError, AppErrorCode, HttpStatusCode, format_error

_PROFILE_COLUMNS = "id,is_live,live_stream_requires_subscription,live_stream_tier_id,mux_playback_id,mux_stream_key"


class RestBackend:
    def __init__(
        self,
        base_url: str,
        api_key: str | None = None,
        access_token: str | None = None,
        timeout: float = 15.0,
        transport: httpx.AsyncBaseTransport | None = None,
        relay: RowEventRelay | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.access_token = access_token
        self.timeout = timeout
        self._transport = transport
        self._relay = relay

    def _build_headers(self, extra: dict[str, str] | None = None) -> dict[str, str]:
        headers: dict[str, str] = {"Content-Type": "application/json"}
        if self.api_key:
            headers["apikey"] = self.api_key
        token = self.access_token or self.api_key
        if token:
            headers["Authorization"] = f"Bearer {token}"
        if extra:
            headers.update(extra)
        return headers

    async def _request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, str] | None = None,
        json: Any = None,
        headers: dict[str, str] | None = None,
    ) -> Any:
        url = f"{self.base_url}{path}"
        try:
            async with httpx.AsyncClient(transport=self._transport, timeout=self.timeout) as client:
                response = await client.request(
                    method,
                    url,
                    params=params,
                    json=json,
                    headers=self._build_headers(headers),
                )
                response.raise_for_status()
        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            logger.warning(f"Backend {method} {path} failed: status={status} body={e.response.text[:200]}")
            if status == HttpStatusCode.NOT_FOUND:
                errcode = AppErrorCode.E_NOT_FOUND
            elif status in (HttpStatusCode.UNAUTHORIZED, HttpStatusCode.FORBIDDEN):
                errcode = AppErrorCode.E_UNAUTHORIZED
            else:
                errcode = AppErrorCode.E_BACKEND_ERROR
            raise AppError(
                errcode=errcode,
                errmesg=f"Backend request failed: {method} {path} ({status})",
                status_code=status,
            ) from e
        except httpx.HTTPError as e:
            logger.warning(f"Backend {method} {path} transport error: {e!r}")
            raise AppError(
                errcode=AppErrorCode.E_BACKEND_ERROR,
                errmesg=f"Backend unreachable: {method} {path}",
                status_code=HttpStatusCode.BAD_GATEWAY,
            ) from e

        if not response.content:
            return None
        return response.json()

    async def _rpc(self, name: str, payload: dict[str, Any]) -> Any:
        return await self._request("POST", f"/rest/v1/rpc/{name}", json=payload)

    @staticmethod
    def _parse_rows(model, rows: Any, what: str) -> list:
        """Validate rows one by one; malformed rows are dropped, never coerced."""
        parsed = []
        for row in rows or []:
            try:
                parsed.append(model.model_validate(row))
            except ValidationError as e:
                row_id = row.get("id") if isinstance(row, dict) else None
                logger.warning(f"Dropping malformed {what} row {row_id!r}: {e.error_count()} errors")
        return parsed

    @staticmethod
    def _first_row(data: Any) -> dict[str, Any] | None:
        if isinstance(data, list):
            data = data[0] if data else None
        return data if isinstance(data, dict) else None

    async def _relay_insert(self, creator_id: str, row: dict[str, Any] | None) -> None:
        if self._relay is None:
            return
        if row is None:
            logger.warning(f"Chat write for {creator_id} returned no row; nothing relayed")
            return
        try:
            await self._relay.publish_row_insert(live_topic(creator_id), row)
        except Exception as e:
            # The row is stored; it still arrives with the next history load.
            logger.warning(f"Failed to relay chat row for {creator_id}: {format_error(e)}")

    async def _relay_delete(self, creator_id: str, message_id: str) -> None:
        if self._relay is None:
            return
        try:
            await self._relay.publish_row_delete(live_topic(creator_id), message_id)
        except Exception as e:
            logger.warning(f"Failed to relay deletion of {message_id} for {creator_id}: {format_error(e)}")

    # ==================== ENTITLEMENT ====================

    async def get_user_subscriptions(self, fan_id: str) -> list[SubscriptionRecord]:
        rows = await self._request(
            "GET",
            "/rest/v1/subscriptions",
            params={
                "select": "*",
                "fan_id": f"eq.{fan_id}",
                "status": f"in.({SubscriptionStatus.ACTIVE},{SubscriptionStatus.CANCELED})",
                "order": "created_at.desc",
            },
        )
        return self._parse_rows(SubscriptionRecord, rows, "subscription")

    async def get_paid_content_ids(self, user_id: str) -> set[str]:
        rows = await self._request(
            "GET",
            "/rest/v1/post_purchases",
            params={"select": "post_id", "user_id": f"eq.{user_id}"},
        )
        return {str(row["post_id"]) for row in rows or [] if row.get("post_id")}

    async def get_creator_tiers(self, creator_id: str) -> list[TierDefinition]:
        rows = await self._rpc("get_creator_tiers", {"p_creator_id": creator_id})
        return self._parse_rows(TierDefinition, rows, "tier")

    async def cancel_subscription(self, subscription_id: str, fan_id: str) -> SubscriptionRecord:
        rows = await self._request(
            "PATCH",
            "/rest/v1/subscriptions",
            params={"id": f"eq.{subscription_id}", "fan_id": f"eq.{fan_id}"},
            json={"status": SubscriptionStatus.CANCELED.value, "auto_renew": False},
            headers={"Prefer": "return=representation"},
        )
        if not rows:
            raise AppError(
                errcode=AppErrorCode.E_NOT_FOUND,
                errmesg=f"Subscription not found: {subscription_id}",
                status_code=HttpStatusCode.NOT_FOUND,
            )
        return SubscriptionRecord.model_validate(rows[0])

    async def resume_subscription(self, subscription_id: str, fan_id: str) -> SubscriptionRecord:
        # The payment processor owns the period end; the edge function writes it back.
        data = await self._request(
            "POST",
            "/functions/v1/resume-subscription",
            json={"subscriptionId": subscription_id},
        )
        record = (data or {}).get("dbRecord")
        if not record:
            raise AppError(
                errcode=AppErrorCode.E_BACKEND_ERROR,
                errmesg=f"Resume returned no record for subscription {subscription_id}",
                status_code=HttpStatusCode.BAD_GATEWAY,
            )
        return SubscriptionRecord.model_validate(record)

    # ==================== LIVE PROFILE ====================

    async def get_creator_live_profile(self, creator_id: str) -> CreatorLiveProfile:
        rows = await self._request(
            "GET",
            "/rest/v1/users",
            params={"select": _PROFILE_COLUMNS, "id": f"eq.{creator_id}"},
        )
        if not rows:
            raise AppError(
                errcode=AppErrorCode.E_NOT_FOUND,
                errmesg=f"Creator not found: {creator_id}",
                status_code=HttpStatusCode.NOT_FOUND,
            )
        return CreatorLiveProfile.from_row(rows[0])

    async def update_live_profile(
        self, creator_id: str, access: LiveAccessConfig, is_live: bool
    ) -> CreatorLiveProfile:
        rows = await self._request(
            "PATCH",
            "/rest/v1/users",
            params={"id": f"eq.{creator_id}", "select": _PROFILE_COLUMNS},
            json={
                "live_stream_requires_subscription": access.requires_subscription,
                "live_stream_tier_id": access.required_tier_id,
                "is_live": is_live,
            },
            headers={"Prefer": "return=representation"},
        )
        if not rows:
            raise AppError(
                errcode=AppErrorCode.E_NOT_FOUND,
                errmesg=f"Creator not found: {creator_id}",
                status_code=HttpStatusCode.NOT_FOUND,
            )
        return CreatorLiveProfile.from_row(rows[0])

    # ==================== LIVE CHAT ====================

    async def get_chat_history(self, creator_id: str, limit: int) -> list[LiveMessage]:
        """Most recent `limit` rows, returned oldest first."""
        rows = await self._request(
            "GET",
            "/rest/v1/live_chat_messages",
            params={
                "select": "*",
                "creator_id": f"eq.{creator_id}",
                "order": "created_at.desc",
                "limit": str(limit),
            },
        )
        return list(reversed(self._parse_rows(LiveMessage, rows, "chat")))

    async def insert_chat_message(
        self,
        creator_id: str,
        user_id: str,
        display_name: str,
        avatar: str | None,
        content: str,
    ) -> None:
        rows = await self._request(
            "POST",
            "/rest/v1/live_chat_messages",
            json={
                "creator_id": creator_id,
                "user_id": user_id,
                "user_name": display_name,
                "user_avatar": avatar,
                "content": content,
                "message_type": MessageKind.CHAT.value,
                "tip_amount": 0,
            },
            headers={"Prefer": "return=representation"},
        )
        await self._relay_insert(creator_id, self._first_row(rows))

    async def send_tip_message(
        self,
        creator_id: str,
        user_id: str,
        display_name: str,
        avatar_marker: str,
        content: str,
        tip_amount: Decimal,
    ) -> None:
        # The procedure returns the stored display row.
        row = await self._rpc(
            "send_tip_message",
            {
                "creator_id_input": creator_id,
                "user_id_input": user_id,
                "user_name_input": display_name,
                "user_avatar_input": avatar_marker,
                "content_input": content,
                "tip_amount_input": str(tip_amount),
            },
        )
        await self._relay_insert(creator_id, self._first_row(row))

    async def delete_chat_message(self, message_id: str, creator_id: str) -> None:
        await self._rpc(
            "delete_chat_message",
            {"message_id_input": message_id, "creator_id_input": creator_id},
        )
        await self._relay_delete(creator_id, message_id)

    # ==================== LEADERBOARD / TERMINATION ====================

    async def get_stream_leaderboard(self, creator_id: str) -> list[Tipper]:
        rows = await self._rpc("get_stream_leaderboard", {"creator_id_input": creator_id})
        return self._parse_rows(Tipper, rows, "leaderboard")

    async def clear_live_chat_and_go_offline(self, creator_id: str) -> None:
        await self._rpc("clear_live_chat_and_go_offline", {"creator_id_input": creator_id})
