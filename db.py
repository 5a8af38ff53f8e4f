from typing import Optional

import httpx
from gotrue import SyncGoTrueClient
from postgrest import SyncPostgrestClient
from realtime import AsyncRealtimeClient

from config import Config
from utils.logger import log_info, log_warning

class SupabaseClient:
    def __init__(self, url: str, key: str, timeout: int = Config.HTTP_TIMEOUT):
        self.url = url
        self.key = key
        self.access_token: Optional[str] = None
        self.headers = {
            "apikey": key,
            "Authorization": f"Bearer {key}",
            "Content-Type": "application/json"
        }
        self.timeout = timeout
        # Shared client for efficiency (latency reduction)
        self._http_client = httpx.Client(headers=self.headers, timeout=timeout)

        # Initialize Auth
        self.auth = SyncGoTrueClient(
            url=f"{url}/auth/v1",
            headers=self.headers,
            storage_key="supabase.auth.token",
            http_client=self._http_client
        )

        # Initialize Database (PostgREST)
        self.rest = SyncPostgrestClient(
            f"{url}/rest/v1",
            headers=self.headers,
            schema="public",
            timeout=timeout
        )

    def set_access_token(self, token: Optional[str]):
        """Apply the signed-in user's JWT so row-level security scopes every query to their company."""
        self.access_token = token
        self.rest.auth(token or self.key)

    def check_connection(self):
        """Verify and refresh the HTTP client if it's dead/disconnected."""
        try:
            resp = self._http_client.get(f"{self.url}/auth/v1/health")
            if resp.status_code >= 500:
                raise httpx.HTTPError("Server side error")
        except httpx.HTTPError as e:
            log_info(f"Supabase Client: Connectivity issue detected ({e}). Re-initializing...")
            try:
                self._http_client.close()
            except httpx.HTTPError as close_err:
                log_info(f"Client close warning: {close_err}")
            self._http_client = httpx.Client(headers=self.headers, timeout=self.timeout)
            self.auth.http_client = self._http_client
            log_info("Supabase Client: Re-initialized.")

    def get_realtime_client(self) -> AsyncRealtimeClient:
        socket_url = f"{self.url.replace('https', 'wss').replace('http', 'ws')}/realtime/v1"
        return AsyncRealtimeClient(socket_url, self.key)

    # Mimic the standard supabase-py interface
    def table(self, table_name: str):
        return self.rest.from_(table_name)

    def from_(self, table_name: str):
        return self.rest.from_(table_name)

    def rpc(self, fn: str, params: dict = None):
        return self.rest.rpc(fn, params or {})


url = Config.SUPABASE_URL
key = Config.SUPABASE_KEY

if not url or not key:
    log_warning("SUPABASE_URL or SUPABASE_KEY not found in .env")
    supabase = None
else:
    supabase = SupabaseClient(url, key)
