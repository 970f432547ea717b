"""
Supabase client wrapper — the sync_queue, mapping and accounts tables.

One postgrest client per wrapper, created on first use so importing the
container never opens a connection.
Version: 1.0.0
"""
import logging

from supabase import Client, ClientOptions, create_client

from catalog_sync.core.config import Settings

logger = logging.getLogger("supabase_client")


class SupabaseClient:
    """Lazily connected supabase-py client."""

    def __init__(self, settings: Settings) -> None:
        self._url = settings.supabase_url
        self._key = settings.supabase_service_role_key
        self._timeout = settings.supabase_timeout_seconds
        self._client: Client | None = None

        if not self._url or not self._key:
            raise RuntimeError(
                "SUPABASE_URL and SUPABASE_SERVICE_ROLE_KEY must be set for the sync queue store"
            )

    def get_client(self) -> Client:
        if self._client is None:
            self._client = create_client(
                self._url,
                self._key,
                options=ClientOptions(postgrest_client_timeout=self._timeout),
            )
            logger.info("supabase client initialized url=%s timeout=%s", self._url, self._timeout)
        return self._client

    @property
    def client(self) -> Client:
        return self.get_client()
