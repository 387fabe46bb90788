"""
View-consistency controller for one member's directory.

Owns the authoritative profile list and the current filter parameters and
re-derives the displayed list whenever either changes. Writes follow a
two-phase protocol: the open form is closed first (intent applied), then the
remote call runs and the list is reloaded until the write is observed or the
attempt budget runs out (durable confirmation). The cache is never patched
locally; every write ends in a full reload, failed writes included.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, List, Optional

from member_directory.config import settings
from member_directory.core.exceptions import ProfileNotFoundError, ProfileOwnershipError
from member_directory.core.results import ReadResult
from member_directory.core.session import AppSession, SessionIdentity
from member_directory.modules.directory.engine import derive_view
from member_directory.modules.directory.schemas import (
    DirectoryFilters, DirectoryView, Facet, SortKey, MutationKind, MutationPhase, MutationResponse
)
from member_directory.modules.profiles.schemas import Profile, ProfileForm, ProfileSetupForm
from member_directory.modules.profiles.service import ProfileService
from member_directory.modules.skills.schemas import Skill
from member_directory.modules.skills.service import SkillService

logger = logging.getLogger(__name__)

FORM_CREATE = "create"
FORM_EDIT = "edit"


@dataclass(frozen=True)
class FormState:
    mode: str  # create | edit
    profile: Optional[Profile] = None


class DirectoryController:
    def __init__(
        self,
        profile_store: ProfileService,
        skill_store: SkillService,
        session: AppSession,
        reload_delay: Optional[float] = None,
        max_attempts: Optional[int] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        on_close: Optional[Callable[[], None]] = None,
    ):
        self.profile_store = profile_store
        self.skill_store = skill_store
        self.session = session
        self.reload_delay = settings.reload_delay_seconds if reload_delay is None else reload_delay
        self.max_attempts = max(1, settings.reload_max_attempts if max_attempts is None else max_attempts)
        self._sleep = sleep
        self._on_close = on_close

        self._profiles: List[Profile] = []
        self._skills: List[Skill] = []
        self._filters = DirectoryFilters()
        self._view: List[Profile] = []
        self._form: Optional[FormState] = None
        self._read_error: Optional[str] = None
        self._loaded = False
        self.last_mutation: Optional[MutationResponse] = None

        self._unsubscribe = session.subscribe(self._on_session_change)

    # -- state --------------------------------------------------------------

    @property
    def profiles(self) -> List[Profile]:
        return list(self._profiles)

    @property
    def skills(self) -> List[Skill]:
        return list(self._skills)

    @property
    def filters(self) -> DirectoryFilters:
        return self._filters

    @property
    def view(self) -> List[Profile]:
        return list(self._view)

    @property
    def form(self) -> Optional[FormState]:
        return self._form

    @property
    def loaded(self) -> bool:
        return self._loaded

    def snapshot(self) -> DirectoryView:
        return DirectoryView(
            filters=self._filters,
            profiles=self.view,
            total=len(self._view),
            source_total=len(self._profiles),
            read_error=self._read_error,
        )

    def _rederive(self) -> None:
        self._view = derive_view(self._profiles, self._filters)

    def _set_profiles(self, result: ReadResult[List[Profile]]) -> None:
        self._profiles = list(result.data)
        self._read_error = result.error.message if result.error else None
        self._rederive()

    def _clear(self) -> None:
        self._profiles = []
        self._skills = []
        self._view = []
        self._form = None
        self._read_error = None
        self._loaded = False

    def _on_session_change(self, previous: Optional[SessionIdentity], current: Optional[SessionIdentity]) -> None:
        if current is None:
            logger.debug(f"Signed out; clearing directory for {previous.user_id if previous else None}")
            self._clear()
        elif previous is None or previous.user_id != current.user_id:
            self._clear()

    def close(self) -> None:
        """Stop following the session and release whatever the controller was built on"""
        self._unsubscribe()
        if self._on_close is not None:
            self._on_close()
            self._on_close = None

    # -- loading ------------------------------------------------------------

    async def load(self) -> DirectoryView:
        """Fetch profiles and skills together; derive the view once both are in"""
        profiles_result, skills_result = await asyncio.gather(
            asyncio.to_thread(self.profile_store.fetch_profiles_result),
            asyncio.to_thread(self.skill_store.fetch_skills_result),
        )
        self._skills = list(skills_result.data)
        self._set_profiles(profiles_result)
        self._loaded = True
        logger.debug(f"Loaded {len(self._profiles)} profiles and {len(self._skills)} skills")
        return self.snapshot()

    async def ensure_loaded(self) -> DirectoryView:
        if not self._loaded:
            return await self.load()
        return self.snapshot()

    async def reload(self) -> ReadResult[List[Profile]]:
        """Refetch the profile list only; skills are read once per session"""
        result = await asyncio.to_thread(self.profile_store.fetch_profiles_result)
        self._set_profiles(result)
        self._loaded = True
        return result

    # -- filters ------------------------------------------------------------

    def set_filters(
        self,
        search: Optional[str] = None,
        category: Optional[str] = None,
        facet: Optional[Facet] = None,
        sort: Optional[SortKey] = None,
    ) -> DirectoryView:
        """Change any subset of the filter parameters; None keeps the current value"""
        changes = {
            key: value
            for key, value in (("search", search), ("category", category), ("facet", facet), ("sort", sort))
            if value is not None
        }
        if changes:
            self._filters = DirectoryFilters(**{**self._filters.model_dump(), **changes})
        self._rederive()
        return self.snapshot()

    def find_profile(self, user_id: str) -> Profile:
        for profile in self._profiles:
            if profile.user_id == user_id:
                return profile
        raise ProfileNotFoundError(f"Profile not found for user {user_id}")

    # -- forms --------------------------------------------------------------

    def _ensure_owner(self, user_id: str, action: str) -> SessionIdentity:
        identity = self.session.require_identity()
        if user_id != identity.user_id:
            raise ProfileOwnershipError(f"You can only {action} your own profile")
        return identity

    def open_create_form(self) -> FormState:
        self.session.require_identity()
        self._form = FormState(mode=FORM_CREATE)
        return self._form

    def open_edit_form(self, user_id: str) -> ProfileForm:
        """Ownership-checked prefill for the edit form"""
        self._ensure_owner(user_id, "edit")
        profile = self.find_profile(user_id)
        self._form = FormState(mode=FORM_EDIT, profile=profile)
        return ProfileForm.from_profile(profile)

    def close_form(self) -> None:
        self._form = None

    # -- writes -------------------------------------------------------------

    async def _reconcile(self, observed: Callable[[List[Profile]], bool]) -> bool:
        """Reload until observed(profiles) holds, at most max_attempts times"""
        for attempt in range(1, self.max_attempts + 1):
            await self._sleep(self.reload_delay)
            await self.reload()
            if observed(self._profiles):
                return True
            logger.debug(f"Write not yet visible after reload {attempt}/{self.max_attempts}")
        logger.warning(f"Write still not visible after {self.max_attempts} reloads")
        return False

    async def _mutate(
        self,
        kind: MutationKind,
        user_id: str,
        operation: Callable[[], Optional[Profile]],
        observed: Callable[[Optional[Profile], List[Profile]], bool],
    ) -> MutationResponse:
        self.close_form()
        outcome = MutationResponse(kind=kind, phase=MutationPhase.INTENT_APPLIED, user_id=user_id)
        self.last_mutation = outcome

        try:
            stored = await asyncio.to_thread(operation)
        except Exception as e:
            error = getattr(e, "message", None) or str(e) or e.__class__.__name__
            self.last_mutation = outcome.model_copy(update={"phase": MutationPhase.FAILED, "error": error})
            # Reconcile against whatever the store holds now, then surface the error
            await self.reload()
            raise

        visible = await self._reconcile(lambda profiles: observed(stored, profiles))
        self.last_mutation = outcome.model_copy(
            update={"phase": MutationPhase.CONFIRMED, "profile": stored, "visible": visible}
        )
        logger.info(f"{kind.value} for user {user_id} confirmed (visible={visible})")
        return self.last_mutation

    async def create_profile(self, form: ProfileForm) -> MutationResponse:
        identity = self.session.require_identity()
        data = form.to_profile_create(identity.user_id)
        return await self._mutate(
            MutationKind.CREATE,
            identity.user_id,
            lambda: self.profile_store.create_profile(data),
            _present,
        )

    async def complete_setup(self, form: ProfileSetupForm) -> MutationResponse:
        """First-login profile creation; email contact comes from the identity"""
        identity = self.session.require_identity()
        data = form.to_profile_create(identity.user_id, email=identity.email)
        return await self._mutate(
            MutationKind.SETUP,
            identity.user_id,
            lambda: self.profile_store.create_profile(data),
            _present,
        )

    async def update_profile(self, user_id: str, form: ProfileForm) -> MutationResponse:
        identity = self._ensure_owner(user_id, "edit")
        partial = form.to_profile_create(identity.user_id).model_dump()
        return await self._mutate(
            MutationKind.UPDATE,
            user_id,
            lambda: self.profile_store.update_profile(user_id, partial),
            _updated,
        )

    async def delete_profile(self, user_id: str) -> MutationResponse:
        self._ensure_owner(user_id, "delete")

        def operation():
            self.profile_store.delete_profile(user_id)
            return None

        return await self._mutate(
            MutationKind.DELETE,
            user_id,
            operation,
            lambda stored, profiles: all(p.user_id != user_id for p in profiles),
        )


def _present(stored: Optional[Profile], profiles: List[Profile]) -> bool:
    return stored is not None and any(p.user_id == stored.user_id for p in profiles)


def _updated(stored: Optional[Profile], profiles: List[Profile]) -> bool:
    if stored is None:
        return False
    for p in profiles:
        if p.user_id == stored.user_id:
            if stored.updated_at is None or p.updated_at is None:
                return True
            return p.updated_at >= stored.updated_at
    return False
