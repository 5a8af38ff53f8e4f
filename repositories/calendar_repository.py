from typing import Any, Dict, List, Optional

import db
from config import Config
from utils.logger import log_error
from utils.network import retry_operation

CUSTOM_EVENTS_TABLE = "calendar_events"


class CalendarRepository:
    """
    Data Access Layer for the calendar.
    Handles all direct interactions with Supabase tables:
    - missions, documents, drones, equipment, incidents (read-only here)
    - calendar_events (custom entries, full CRUD)
    Every query is scoped to one company on top of row-level security.
    """
    def __init__(self, client=None):
        self._client = client

    @property
    def client(self):
        client = self._client or db.supabase
        if client is None:
            raise RuntimeError("Supabase client is not configured (SUPABASE_URL / SUPABASE_KEY)")
        return client

    @retry_operation(max_retries=2, delay=0.5)
    def list_rows(self, table: str, company_id: str, columns: str = "*",
                  not_null: Optional[str] = None, order_by: Optional[str] = None,
                  limit: int = Config.MAX_ROWS_PER_SOURCE) -> List[Dict[str, Any]]:
        """Fetch a company's rows, optionally only those with a non-null date column."""
        query = self.client.table(table).select(columns).eq("company_id", company_id)
        if not_null:
            query = query.not_.is_(not_null, "null")
        if order_by:
            query = query.order(order_by)
        res = query.limit(limit).execute()
        return res.data or []

    @retry_operation(max_retries=2, delay=0.5)
    def get_row(self, table: str, row_id: str, company_id: str) -> Optional[Dict[str, Any]]:
        """Fetch one full row. None when it no longer exists (or is not visible to the company)."""
        res = self.client.table(table)\
            .select("*")\
            .eq("id", row_id)\
            .eq("company_id", company_id)\
            .limit(1)\
            .execute()
        return res.data[0] if res.data else None

    def insert_custom_event(self, data: Dict[str, Any]) -> Dict[str, Any]:
        """Insert new calendar entry and return the stored row."""
        res = self.client.table(CUSTOM_EVENTS_TABLE).insert(data).execute()
        if not res.data:
            log_error(f"CalendarRepository.insert_custom_event: empty response for {data.get('title')}")
            raise RuntimeError("Insert returned no row")
        return res.data[0]

    def update_custom_event(self, event_id: str, company_id: str, data: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """Update calendar entry. None when no row matched."""
        res = self.client.table(CUSTOM_EVENTS_TABLE)\
            .update(data)\
            .eq("id", event_id)\
            .eq("company_id", company_id)\
            .execute()
        return res.data[0] if res.data else None

    def delete_custom_event(self, event_id: str, company_id: str) -> bool:
        """Delete calendar entry. False when no row matched."""
        res = self.client.table(CUSTOM_EVENTS_TABLE)\
            .delete()\
            .eq("id", event_id)\
            .eq("company_id", company_id)\
            .execute()
        return bool(res.data)
