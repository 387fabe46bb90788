"""
Application session context.

One per signed-in member. Holds that member's identity and is handed
explicitly to whatever needs it. Listeners register here; this object is also
the only place that subscribes to the session-change stream of the member's
own client.
"""

import logging
from dataclasses import dataclass
from typing import Any, Callable, List, Optional

from member_directory.core.exceptions import AuthError

logger = logging.getLogger(__name__)

SessionListener = Callable[[Optional["SessionIdentity"], Optional["SessionIdentity"]], None]


@dataclass(frozen=True)
class SessionIdentity:
    user_id: str
    email: Optional[str] = None
    access_token: Optional[str] = None

    @classmethod
    def from_auth_session(cls, session: Any) -> Optional["SessionIdentity"]:
        """Build from a Supabase auth Session (or None when signed out)"""
        if session is None or getattr(session, "user", None) is None:
            return None
        return cls(
            user_id=session.user.id,
            email=getattr(session.user, "email", None),
            access_token=getattr(session, "access_token", None),
        )


class AppSession:
    def __init__(self, identity: Optional[SessionIdentity] = None):
        self._identity = identity
        self._listeners: List[SessionListener] = []
        self._subscription = None

    @property
    def identity(self) -> Optional[SessionIdentity]:
        return self._identity

    @property
    def user_id(self) -> Optional[str]:
        return self._identity.user_id if self._identity else None

    @property
    def is_authenticated(self) -> bool:
        return self._identity is not None

    def require_identity(self) -> SessionIdentity:
        if self._identity is None:
            raise AuthError("You must be signed in to do that")
        return self._identity

    def subscribe(self, listener: SessionListener) -> Callable[[], None]:
        """Register listener(previous, current); returns an unsubscribe callable"""
        self._listeners.append(listener)

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def set_identity(self, identity: Optional[SessionIdentity]) -> None:
        previous = self._identity
        self._identity = identity
        if previous == identity:
            return
        for listener in list(self._listeners):
            try:
                listener(previous, identity)
            except Exception as e:
                logger.exception(f"Session listener failed: {e}")

    def sign_out(self) -> None:
        self.set_identity(None)

    def handle_auth_event(self, event: str, session: Any) -> None:
        """Callback for the auth client's on_auth_state_change stream"""
        identity = SessionIdentity.from_auth_session(session)
        if identity is None and event != "SIGNED_OUT":
            # Events without a session only end the session when they say so
            return
        logger.info(f"Auth event {event} (user={identity.user_id if identity else None})")
        self.set_identity(identity)

    def attach(self, auth_client: Any) -> None:
        """Subscribe once to auth_client's session-change notifications"""
        if self._subscription is not None:
            return
        self._subscription = auth_client.on_auth_state_change(self.handle_auth_event)

    def detach(self) -> None:
        if self._subscription is not None:
            self._subscription.unsubscribe()
            self._subscription = None
