"""
Push-based row change notifications.

The listener only depends on ChangeFeed; RealtimeChangeFeed is the Supabase
realtime implementation of it.
"""
import abc
import asyncio
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional

from pydantic import BaseModel, Field

import db
from utils.logger import log_error, log_info, log_warning


class ChangeKind(str, Enum):
    INSERT = "INSERT"
    UPDATE = "UPDATE"
    DELETE = "DELETE"


class ChangeEvent(BaseModel):
    table: str
    kind: ChangeKind
    new: Dict[str, Any] = Field(default_factory=dict)
    old: Dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_realtime_payload(cls, table: str, payload: Any) -> "ChangeEvent":
        """
        Accepts the realtime-py payload ({"data": {"type", "record", "old_record", ...}})
        as well as the flat JS-client shape ({"eventType", "new", "old"}).
        """
        if not isinstance(payload, dict):
            raise ValueError(f"unexpected payload {payload!r}")
        data = payload.get("data", payload)
        if not isinstance(data, dict):
            raise ValueError(f"unexpected payload data {data!r}")

        kind = data.get("type") or data.get("eventType")
        if not kind:
            raise ValueError("payload has no event type")
        return cls(
            table=data.get("table") or table,
            kind=ChangeKind(str(kind).upper()),
            new=data.get("record") or data.get("new") or {},
            old=data.get("old_record") or data.get("old") or {},
        )


OnChange = Callable[[ChangeEvent], None]
Unsubscribe = Callable[[], Awaitable[None]]


class ChangeFeed(abc.ABC):
    """subscribe(table, on_event) -> unsubscribe"""

    @abc.abstractmethod
    async def subscribe(self, table: str, on_event: OnChange) -> Unsubscribe:
        ...

    async def close(self) -> None:
        """Release the underlying connection, if any."""


class RealtimeChangeFeed(ChangeFeed):
    """One realtime socket, one channel per subscribed table."""

    def __init__(self, client_factory: Optional[Callable[[], Any]] = None,
                 access_token: Optional[str] = None, schema: str = "public"):
        self._client_factory = client_factory or self._default_client
        self.access_token = access_token
        self.schema = schema
        self._client = None
        self._channels: List[Any] = []
        self._lock = asyncio.Lock()

    @staticmethod
    def _default_client():
        if db.supabase is None:
            raise RuntimeError("Supabase client is not configured")
        return db.supabase.get_realtime_client()

    async def _ensure_connected(self):
        async with self._lock:
            if self._client is None:
                client = self._client_factory()
                await client.connect()
                if self.access_token:
                    await client.set_auth(self.access_token)
                self._client = client
                log_info("CALENDAR_SYNC [RT]: Connected.")
        return self._client

    async def subscribe(self, table: str, on_event: OnChange) -> Unsubscribe:
        client = await self._ensure_connected()
        channel = client.channel(f"{table}-changes")

        def on_payload(payload):
            try:
                event = ChangeEvent.from_realtime_payload(table, payload)
            except ValueError as e:
                log_warning(f"CALENDAR_SYNC [RT]: Ignoring {table} payload: {e}")
                return
            on_event(event)

        channel.on_postgres_changes("*", callback=on_payload, table=table, schema=self.schema)
        await channel.subscribe()
        self._channels.append(channel)
        log_info(f"CALENDAR_SYNC [RT]: Subscribed to {table}")

        async def unsubscribe():
            if channel not in self._channels:
                return
            self._channels.remove(channel)
            await channel.unsubscribe()
            log_info(f"CALENDAR_SYNC [RT]: Unsubscribed from {table}")

        return unsubscribe

    async def close(self) -> None:
        for channel in list(self._channels):
            try:
                await channel.unsubscribe()
            except Exception as e:
                log_error(f"CALENDAR_SYNC [RT]: channel cleanup failed: {e}")
        self._channels.clear()

        if self._client is not None:
            client, self._client = self._client, None
            try:
                await client.close()
            except Exception as e:
                log_error(f"CALENDAR_SYNC [RT]: disconnect failed: {e}")
