"""Tests for DirectoryController: loading, filtering and the write protocol."""

from unittest.mock import AsyncMock, Mock

import pytest

from member_directory.core.exceptions import (
    AuthError, ProfileNotFoundError, ProfileOwnershipError, RemoteReadError, RemoteWriteError
)
from member_directory.core.results import ReadResult
from member_directory.core.session import AppSession
from member_directory.modules.directory.controller import DirectoryController, FORM_EDIT
from member_directory.modules.directory.schemas import Facet, MutationKind, MutationPhase, SortKey
from member_directory.modules.profiles.schemas import ProfileForm, ProfileSetupForm

from conftest import OTHER_ID, OWNER_ID, make_profile, ts


class TestLoad:
    @pytest.mark.asyncio
    async def test_load_fetches_profiles_and_skills(self, controller, profile_store, skill_store):
        view = await controller.load()

        profile_store.fetch_profiles_result.assert_called_once()
        skill_store.fetch_skills_result.assert_called_once()
        assert controller.loaded
        assert [s.name for s in controller.skills] == ["Python", "Go", "Fundraising"]
        assert [p.display_name for p in view.profiles] == ["Bo", "Ann"]
        assert view.source_total == 2
        assert view.read_error is None

    @pytest.mark.asyncio
    async def test_ensure_loaded_loads_once(self, controller, profile_store):
        await controller.ensure_loaded()
        await controller.ensure_loaded()
        profile_store.fetch_profiles_result.assert_called_once()

    @pytest.mark.asyncio
    async def test_read_failure_renders_empty_but_keeps_reason(self, controller, profile_store):
        profile_store.fetch_profiles_result.return_value = ReadResult.failure(RemoteReadError("offline"), [])

        view = await controller.load()

        assert view.profiles == []
        assert view.read_error == "offline"


class TestFilters:
    @pytest.mark.asyncio
    async def test_view_rederived_on_filter_change(self, controller):
        await controller.load()

        view = controller.set_filters(search="mentor")
        assert [p.display_name for p in view.profiles] == ["Ann"]

        view = controller.set_filters(search="", category="consulting", facet=Facet.OPEN_TO)
        assert [p.display_name for p in view.profiles] == ["Bo"]

    @pytest.mark.asyncio
    async def test_omitted_parameters_keep_current_values(self, controller):
        await controller.load()
        controller.set_filters(sort=SortKey.DISPLAY_NAME)

        view = controller.set_filters(search="o")

        assert view.filters.sort == SortKey.DISPLAY_NAME
        assert [p.display_name for p in view.profiles] == ["Ann", "Bo"]

    @pytest.mark.asyncio
    async def test_view_rederived_on_reload(self, controller, profile_store, ann, bo):
        await controller.load()
        controller.set_filters(search="rust")
        carl = make_profile("user-carl", "Carl", skills=["Rust"], created_at=ts(2025))
        profile_store.fetch_profiles_result.return_value = ReadResult.success([ann, bo, carl])

        await controller.reload()

        assert [p.display_name for p in controller.view] == ["Carl", "Bo"]


class TestForms:
    @pytest.mark.asyncio
    async def test_edit_form_prefills_own_profile(self, controller):
        await controller.load()

        form = controller.open_edit_form(OWNER_ID)

        assert form.display_name == "Ann"
        assert form.skills == "Go"
        assert controller.form.mode == FORM_EDIT

    @pytest.mark.asyncio
    async def test_edit_form_rejects_other_member(self, controller):
        await controller.load()
        with pytest.raises(ProfileOwnershipError):
            controller.open_edit_form(OTHER_ID)
        assert controller.form is None

    @pytest.mark.asyncio
    async def test_find_unknown_profile(self, controller):
        await controller.load()
        with pytest.raises(ProfileNotFoundError):
            controller.find_profile("user-ghost")


class TestUpdate:
    @pytest.mark.asyncio
    async def test_form_closed_before_remote_call(self, controller, profile_store, ann):
        await controller.load()
        controller.open_edit_form(OWNER_ID)
        seen = {}

        def update(user_id, partial):
            seen["form"] = controller.form
            return ann

        profile_store.update_profile.side_effect = update

        outcome = await controller.update_profile(OWNER_ID, ProfileForm(display_name="Ann"))

        assert seen["form"] is None
        assert outcome.phase == MutationPhase.CONFIRMED
        assert outcome.kind == MutationKind.UPDATE
        assert outcome.visible is True

    @pytest.mark.asyncio
    async def test_update_sends_form_fields_and_reloads(self, controller, profile_store, ann):
        await controller.load()
        profile_store.update_profile.return_value = ann

        await controller.update_profile(OWNER_ID, ProfileForm(display_name="Annie", skills="Go, Rust"))

        user_id, partial = profile_store.update_profile.call_args[0]
        assert user_id == OWNER_ID
        assert partial["display_name"] == "Annie"
        assert partial["skills"] == ["Go", "Rust"]
        assert profile_store.fetch_profiles_result.call_count == 2

    @pytest.mark.asyncio
    async def test_other_members_profile_rejected_before_remote_call(self, controller, profile_store):
        await controller.load()

        with pytest.raises(ProfileOwnershipError):
            await controller.update_profile(OTHER_ID, ProfileForm(display_name="Bo"))

        profile_store.update_profile.assert_not_called()
        assert profile_store.fetch_profiles_result.call_count == 1

    @pytest.mark.asyncio
    async def test_failure_reloads_then_raises(self, controller, profile_store):
        await controller.load()
        profile_store.update_profile.side_effect = RemoteWriteError("permission denied", code="42501")

        with pytest.raises(RemoteWriteError, match="permission denied"):
            await controller.update_profile(OWNER_ID, ProfileForm(display_name="Ann"))

        assert profile_store.fetch_profiles_result.call_count == 2
        assert controller.last_mutation.phase == MutationPhase.FAILED
        assert controller.last_mutation.error == "permission denied"

    @pytest.mark.asyncio
    async def test_polls_until_update_visible(self, profile_store, skill_store, app_session, ann, bo):
        sleep = AsyncMock()
        controller = DirectoryController(profile_store, skill_store, app_session, reload_delay=0.1, max_attempts=3, sleep=sleep)
        await controller.load()
        stored = ann.model_copy(update={"display_name": "Annie", "updated_at": ts(2025, 2, 2)})
        stale = ann.model_copy(update={"updated_at": ts(2025, 1, 1)})
        profile_store.update_profile.return_value = stored
        profile_store.fetch_profiles_result.side_effect = [
            ReadResult.success([stale, bo]),
            ReadResult.success([stored, bo]),
        ]

        outcome = await controller.update_profile(OWNER_ID, ProfileForm(display_name="Annie"))

        assert outcome.visible is True
        assert sleep.await_count == 2
        sleep.assert_awaited_with(0.1)
        assert controller.find_profile(OWNER_ID).display_name == "Annie"

    @pytest.mark.asyncio
    async def test_gives_up_after_max_attempts(self, profile_store, skill_store, app_session, ann):
        controller = DirectoryController(profile_store, skill_store, app_session, reload_delay=0, max_attempts=2)
        await controller.load()
        profile_store.update_profile.return_value = ann.model_copy(update={"user_id": "user-moved"})

        outcome = await controller.update_profile(OWNER_ID, ProfileForm(display_name="Ann"))

        assert outcome.visible is False
        assert outcome.phase == MutationPhase.CONFIRMED
        assert profile_store.fetch_profiles_result.call_count == 3


class TestCreateAndSetup:
    @pytest.mark.asyncio
    async def test_create_uses_signed_in_identity(self, controller, profile_store, ann):
        await controller.load()
        controller.open_create_form()
        profile_store.create_profile.return_value = ann

        outcome = await controller.create_profile(ProfileForm(display_name="Ann", skills="Go"))

        data = profile_store.create_profile.call_args[0][0]
        assert data.user_id == OWNER_ID
        assert data.skills == ["Go"]
        assert outcome.kind == MutationKind.CREATE
        assert outcome.profile == ann
        assert controller.form is None

    @pytest.mark.asyncio
    async def test_setup_takes_email_from_identity(self, controller, profile_store, ann):
        await controller.load()
        profile_store.create_profile.return_value = ann

        outcome = await controller.complete_setup(ProfileSetupForm(display_name="Ann", contact_method="email"))

        data = profile_store.create_profile.call_args[0][0]
        assert data.contact_email == "ann@example.com"
        assert outcome.kind == MutationKind.SETUP

    @pytest.mark.asyncio
    async def test_failure_reloads_then_raises(self, controller, profile_store):
        await controller.load()
        profile_store.create_profile.side_effect = RemoteWriteError("duplicate key value", code="23505")

        with pytest.raises(RemoteWriteError, match="duplicate key value"):
            await controller.create_profile(ProfileForm(display_name="Ann"))

        assert profile_store.fetch_profiles_result.call_count == 2
        assert controller.last_mutation.kind == MutationKind.CREATE
        assert controller.last_mutation.phase == MutationPhase.FAILED

    @pytest.mark.asyncio
    async def test_setup_failure_reloads_then_raises(self, controller, profile_store):
        await controller.load()
        profile_store.create_profile.side_effect = RemoteWriteError("permission denied")

        with pytest.raises(RemoteWriteError):
            await controller.complete_setup(ProfileSetupForm(display_name="Ann"))

        assert profile_store.fetch_profiles_result.call_count == 2
        assert controller.last_mutation.kind == MutationKind.SETUP
        assert controller.last_mutation.phase == MutationPhase.FAILED

    @pytest.mark.asyncio
    async def test_unexpected_error_still_reloads_and_fails(self, controller, profile_store):
        await controller.load()
        profile_store.create_profile.side_effect = ValueError("stored row did not parse")

        with pytest.raises(ValueError):
            await controller.create_profile(ProfileForm(display_name="Ann"))

        assert profile_store.fetch_profiles_result.call_count == 2
        assert controller.last_mutation.phase == MutationPhase.FAILED
        assert controller.last_mutation.error == "stored row did not parse"

    @pytest.mark.asyncio
    async def test_create_requires_sign_in(self, profile_store, skill_store):
        controller = DirectoryController(profile_store, skill_store, AppSession(), reload_delay=0)
        with pytest.raises(AuthError):
            await controller.create_profile(ProfileForm(display_name="Ann"))
        profile_store.create_profile.assert_not_called()


class TestDelete:
    @pytest.mark.asyncio
    async def test_delete_own_profile(self, controller, profile_store, bo):
        await controller.load()
        profile_store.fetch_profiles_result.return_value = ReadResult.success([bo])

        outcome = await controller.delete_profile(OWNER_ID)

        profile_store.delete_profile.assert_called_once_with(OWNER_ID)
        assert outcome.visible is True
        assert outcome.profile is None
        assert [p.user_id for p in controller.view] == [OTHER_ID]

    @pytest.mark.asyncio
    async def test_delete_other_rejected(self, controller, profile_store):
        await controller.load()
        with pytest.raises(ProfileOwnershipError):
            await controller.delete_profile(OTHER_ID)
        profile_store.delete_profile.assert_not_called()

    @pytest.mark.asyncio
    async def test_failure_reloads_then_raises(self, controller, profile_store):
        await controller.load()
        profile_store.delete_profile.side_effect = RemoteWriteError("permission denied", code="42501")

        with pytest.raises(RemoteWriteError, match="permission denied"):
            await controller.delete_profile(OWNER_ID)

        assert profile_store.fetch_profiles_result.call_count == 2
        assert controller.last_mutation.kind == MutationKind.DELETE
        assert controller.last_mutation.phase == MutationPhase.FAILED
        assert controller.find_profile(OWNER_ID).display_name == "Ann"


class TestSessionChanges:
    @pytest.mark.asyncio
    async def test_sign_out_clears_directory(self, controller, app_session):
        await controller.load()

        app_session.sign_out()

        assert controller.view == []
        assert controller.profiles == []
        assert not controller.loaded

    @pytest.mark.asyncio
    async def test_token_refresh_keeps_directory(self, controller, app_session, identity):
        await controller.load()

        app_session.set_identity(identity.__class__(identity.user_id, identity.email, "token-new"))

        assert controller.loaded
        assert len(controller.profiles) == 2

    @pytest.mark.asyncio
    async def test_close_unsubscribes(self, controller, app_session):
        await controller.load()
        controller.close()

        app_session.sign_out()

        assert controller.loaded is True

    def test_close_releases_resources_once(self, profile_store, skill_store, app_session):
        release = Mock()
        controller = DirectoryController(profile_store, skill_store, app_session, on_close=release)

        controller.close()
        controller.close()

        release.assert_called_once()
