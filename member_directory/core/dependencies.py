"""
Core dependencies: bearer-token identity and the member's directory controller
"""

from fastapi import Depends, Security
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from member_directory.config import settings
from member_directory.database.supabase_client import SupabaseClient, get_supabase
from member_directory.core.session import AppSession, SessionIdentity
from member_directory.modules.auth.service import AuthService
from member_directory.modules.directory import registry as directory_registry
from member_directory.modules.directory.controller import DirectoryController
from member_directory.modules.profiles.service import ProfileService
from member_directory.modules.skills.service import SkillService
from supabase import Client
from typing import Optional
import logging

logger = logging.getLogger(__name__)

security = HTTPBearer()


def get_auth_service(supabase: Client = Depends(get_supabase)) -> AuthService:
    return AuthService(supabase, settings.session_storage_dir)


def get_current_token(
    credentials: HTTPAuthorizationCredentials = Security(security)
) -> str:
    """Extract JWT token from Authorization header"""
    return credentials.credentials


def get_current_user_id(
    token: str = Depends(get_current_token),
    auth_service: AuthService = Depends(get_auth_service)
) -> dict:
    """Extract current user info from JWT token"""
    return auth_service.get_current_user(token)


def get_current_identity(
    token: str = Depends(get_current_token),
    user_data: dict = Depends(get_current_user_id),
) -> SessionIdentity:
    return SessionIdentity(user_id=user_data["id"], email=user_data.get("email"), access_token=token)


def build_directory_controller(identity: SessionIdentity) -> DirectoryController:
    """Controller whose table client acts as the member, so row-level policies apply"""
    client = SupabaseClient.get_member_client(identity.access_token)
    session = AppSession(identity)

    def follow_token(previous: Optional[SessionIdentity], current: Optional[SessionIdentity]) -> None:
        if current is not None and current.access_token:
            client.postgrest.auth(current.access_token)

    session.subscribe(follow_token)
    # Session events for this member come from their own client only
    session.attach(client.auth)

    def release() -> None:
        session.detach()
        SupabaseClient.close_client(client)

    return DirectoryController(ProfileService(client), SkillService(client), session, on_close=release)


def get_directory_controller(
    identity: SessionIdentity = Depends(get_current_identity),
) -> DirectoryController:
    return directory_registry.get_or_create(identity, build_directory_controller)


async def get_loaded_controller(
    controller: DirectoryController = Depends(get_directory_controller),
) -> DirectoryController:
    """Controller with its initial profiles + skills load done"""
    await controller.ensure_loaded()
    return controller
