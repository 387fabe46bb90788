import logging
from supabase import create_client, Client, ClientOptions
from member_directory.config import settings
from member_directory.database.session_storage import PreferenceAwareStorage
from typing import Optional

logger = logging.getLogger(__name__)


class SupabaseClient:
    """Supabase clients for a server shared by many members.

    The shared client never holds a member session: it only makes calls that
    carry the member's token explicitly (``auth.get_user(jwt=...)``,
    ``auth.admin.sign_out(...)``). Flows that leave a session behind run on a
    client built for that one member.
    """

    _client: Client = None

    @classmethod
    def get_client(cls) -> Client:
        if cls._client is None:
            options = ClientOptions(auto_refresh_token=False, persist_session=False)
            cls._client = create_client(settings.supabase_url, settings.supabase_key, options=options)
        return cls._client

    @classmethod
    def create_auth_client(cls, storage: Optional[PreferenceAwareStorage] = None) -> Client:
        """Client for one member's sign-in flow; its session lands in that member's storage"""
        if storage is None:
            options = ClientOptions(auto_refresh_token=False, persist_session=False)
        else:
            options = ClientOptions(storage=storage, auto_refresh_token=False, persist_session=True)
        return create_client(settings.supabase_url, settings.supabase_key, options=options)

    @classmethod
    def get_member_client(cls, access_token: str) -> Client:
        """Table client acting as the signed-in member, so row-level policies apply."""
        client = create_client(
            settings.supabase_url,
            settings.supabase_key,
            options=ClientOptions(auto_refresh_token=False, persist_session=False),
        )
        client.postgrest.auth(access_token)
        return client

    @staticmethod
    def close_client(client: Client) -> None:
        """Release the HTTP connections a per-member client opened"""
        try:
            client.postgrest.session.close()
        except Exception as e:
            logger.warning(f"Failed to close member client: {e}")

    @classmethod
    def reset_client(cls):
        cls._client = None


def get_supabase() -> Client:
    return SupabaseClient.get_client()
