from datetime import datetime, timezone
from unittest.mock import MagicMock, Mock

import pytest

from member_directory.core.results import ReadResult
from member_directory.core.session import AppSession, SessionIdentity
from member_directory.modules.directory.controller import DirectoryController
from member_directory.modules.profiles.schemas import Profile
from member_directory.modules.skills.schemas import Skill

OWNER_ID = "user-ann"
OTHER_ID = "user-bo"


def make_profile(user_id: str, display_name: str, **fields) -> Profile:
    """Build a visible profile with sensible defaults."""
    data = {
        "user_id": user_id,
        "display_name": display_name,
        "background": "",
        "skills": [],
        "open_to": [],
        "can_provide": [],
        "contact_method": "slack",
        "slack_handle": display_name.lower(),
        "is_visible": True,
    }
    data.update(fields)
    return Profile(**data)


def ts(year: int, month: int = 1, day: int = 1) -> datetime:
    return datetime(year, month, day, tzinfo=timezone.utc)


@pytest.fixture
def ann():
    return make_profile(
        OWNER_ID, "Ann", skills=["Go"], open_to=["mentoring_others"], created_at=ts(2024, 1, 1)
    )


@pytest.fixture
def bo():
    return make_profile(
        OTHER_ID, "Bo", skills=["Rust"], open_to=["consulting"], created_at=ts(2024, 6, 1)
    )


@pytest.fixture
def skills():
    return [
        Skill(id=1, name="Python", category="engineering"),
        Skill(id=2, name="Go", category="engineering"),
        Skill(id=3, name="Fundraising", category="business"),
    ]


@pytest.fixture
def supabase_client():
    """MagicMock standing in for supabase.Client; query builders chain freely."""
    return MagicMock()


@pytest.fixture
def identity():
    return SessionIdentity(user_id=OWNER_ID, email="ann@example.com", access_token="token-ann")


@pytest.fixture
def profile_store(ann, bo):
    store = Mock()
    store.fetch_profiles_result.return_value = ReadResult.success([ann, bo])
    return store


@pytest.fixture
def skill_store(skills):
    store = Mock()
    store.fetch_skills_result.return_value = ReadResult.success(skills)
    return store


@pytest.fixture
def app_session(identity):
    return AppSession(identity)


@pytest.fixture
def controller(profile_store, skill_store, app_session):
    return DirectoryController(
        profile_store,
        skill_store,
        app_session,
        reload_delay=0,
        max_attempts=3,
    )
