"""
Reads and writes against the Supabase ``profiles`` table.

profiles:
- id: uuid (primary key, default: gen_random_uuid())
- user_id: uuid (unique, not null, references auth.users.id)
- display_name: text (not null)
- background: text (not null)
- bio: text (nullable)
- location: text (nullable)
- open_to: text[] (nullable, treated as [] on read)
- can_provide: text[] (nullable, treated as [] on read)
- skills: text[] (default: '{}')
- contact_method: text (check: 'slack' | 'email')
- slack_handle: text (nullable, meaningful when contact_method = 'slack')
- contact_email: text (nullable, meaningful when contact_method = 'email')
- linkedin_url: text (nullable)
- twitter_url: text (nullable)
- website_url: text (nullable)
- is_visible: boolean (default: true)
- created_at: timestamp (default: now())
- updated_at: timestamp (nullable)

Row-level security restricts insert/update/delete to rows whose user_id
equals auth.uid(); the ownership check in the directory controller is a
convenience, not the security boundary.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Union

from pydantic import BaseModel, ValidationError
from supabase import Client

from member_directory.core.exceptions import RemoteReadError, RemoteWriteError
from member_directory.core.results import ReadResult
from member_directory.modules.profiles.schemas import Profile, ProfileCreate, ProfileUpdate

logger = logging.getLogger(__name__)

PROFILES_TABLE = "profiles"

# Columns an update is allowed to touch. bio, location and the social links
# are accepted at setup but never sent on update; see DESIGN.md.
UPDATE_ALLOWED_FIELDS = (
    "display_name",
    "background",
    "skills",
    "open_to",
    "can_provide",
    "contact_method",
    "slack_handle",
    "contact_email",
    "updated_at",
)


def _parse_rows(rows: List[Dict[str, Any]]) -> List[Profile]:
    profiles = []
    for row in rows:
        try:
            profiles.append(Profile(**row))
        except ValidationError as e:
            logger.warning(f"Skipping malformed profile row {row.get('user_id')}: {e}")
    return profiles


def build_update_payload(partial: Union[ProfileUpdate, Dict[str, Any]]) -> Dict[str, Any]:
    """Normalize can_provide, stamp updated_at and keep only allow-listed columns."""
    if isinstance(partial, BaseModel):
        data = partial.model_dump(exclude_unset=True)
    else:
        data = dict(partial)
    data["can_provide"] = list(data.get("can_provide") or [])
    data["updated_at"] = datetime.now(timezone.utc).isoformat()
    dropped = sorted(k for k in data if k not in UPDATE_ALLOWED_FIELDS)
    if dropped:
        logger.debug(f"Dropping fields outside the update allow-list: {dropped}")
    return {k: data[k] for k in UPDATE_ALLOWED_FIELDS if k in data}


class ProfileService:
    def __init__(self, supabase: Client):
        self.supabase = supabase

    def fetch_profiles_result(self) -> ReadResult[List[Profile]]:
        """Visible profiles, newest first, or the reason they could not be read"""
        try:
            result = self.supabase.table(PROFILES_TABLE)\
                .select("*")\
                .eq("is_visible", True)\
                .order("created_at", desc=True)\
                .execute()
            return ReadResult.success(_parse_rows(result.data or []))
        except Exception as e:
            error = RemoteReadError.from_exception(e)
            logger.error(f"Error fetching profiles: {error.message} (code={error.code})")
            return ReadResult.failure(error, [])

    def fetch_profiles(self) -> List[Profile]:
        """Visible profiles; empty when the read fails"""
        return self.fetch_profiles_result().data

    def has_profile(self, user_id: str) -> bool:
        """True if a profile row exists for user_id (visible or not)"""
        try:
            result = self.supabase.table(PROFILES_TABLE)\
                .select("user_id")\
                .eq("user_id", user_id)\
                .limit(1)\
                .execute()
            return bool(result.data)
        except Exception as e:
            logger.error(f"Error checking profile for user {user_id}: {e}")
            return False

    def create_profile(self, data: ProfileCreate) -> Profile:
        """Insert a profile and return the stored row"""
        logger.info(f"Creating profile for user {data.user_id}")
        try:
            result = self.supabase.table(PROFILES_TABLE)\
                .insert(data.model_dump(mode="json"))\
                .execute()
        except Exception as e:
            error = RemoteWriteError.from_exception(e)
            logger.error(
                f"Profile creation failed for user {data.user_id}: "
                f"{error.message} (code={error.code}, hint={error.hint}, details={error.details})"
            )
            raise error from e

        if not result.data:
            raise RemoteWriteError("Profile creation returned no row")
        return Profile(**result.data[0])

    def update_profile(self, user_id: str, partial: Union[ProfileUpdate, Dict[str, Any]]) -> Profile:
        """Update the allow-listed columns of user_id's profile"""
        payload = build_update_payload(partial)
        logger.info(f"Updating profile for user {user_id}: {sorted(payload)}")
        try:
            result = self.supabase.table(PROFILES_TABLE)\
                .update(payload)\
                .eq("user_id", user_id)\
                .execute()
        except Exception as e:
            error = RemoteWriteError.from_exception(e)
            logger.error(f"Profile update failed for user {user_id}: {error.message} (code={error.code})")
            raise error from e

        if not result.data:
            raise RemoteWriteError(f"No profile found for user {user_id}")
        return Profile(**result.data[0])

    def delete_profile(self, user_id: str) -> None:
        """Hard-delete user_id's profile"""
        logger.info(f"Deleting profile for user {user_id}")
        try:
            self.supabase.table(PROFILES_TABLE)\
                .delete()\
                .eq("user_id", user_id)\
                .execute()
        except Exception as e:
            error = RemoteWriteError.from_exception(e)
            logger.error(f"Profile deletion failed for user {user_id}: {error.message} (code={error.code})")
            raise error from e
