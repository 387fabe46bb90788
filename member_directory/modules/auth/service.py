import base64
import hashlib
import hmac
import json
import logging
import re
import secrets
import time
from pathlib import Path
from supabase import Client
from member_directory.modules.auth.schemas import RegisterResponse, TokenResponse, SessionResponse
from member_directory.config.settings import settings
from member_directory.core.exceptions import AuthError
from member_directory.database.session_storage import PreferenceAwareStorage, member_storage
from member_directory.database.supabase_client import SupabaseClient
from typing import Callable, Dict, Any, Optional, Union

logger = logging.getLogger(__name__)

# In-memory cache for get_current_user to reduce Supabase auth calls (e.g. many parallel requests with same token)
_AUTH_USER_CACHE: Dict[str, tuple] = {}
_AUTH_CACHE_TTL_SEC = 60
_AUTH_CACHE_MAX_SIZE = 500

OTP_PATTERN = re.compile(r"^\d{6}$")

AuthClientFactory = Callable[[Optional[PreferenceAwareStorage]], Client]


def _error_message(exc: Exception, fallback: str) -> str:
    return getattr(exc, "message", None) or str(exc) or fallback


def _cache_key(token: str) -> str:
    return hashlib.sha256(token.encode()).hexdigest()


def _token_expiry(token: str) -> Optional[int]:
    """`exp` claim of an access token already accepted by Supabase Auth"""
    try:
        payload = token.split(".")[1]
        claims = json.loads(base64.urlsafe_b64decode(payload + "=" * (-len(payload) % 4)))
        return int(claims["exp"])
    except (IndexError, KeyError, TypeError, ValueError):
        return None


class AuthService:
    """Passwordless sign-in for many members at once.

    ``supabase`` is the shared client and only makes calls that carry the
    member's token. Sign-in, sign-up and code verification each run on a
    fresh client built by ``client_factory`` around that member's own storage,
    so no member's session is ever visible to another.
    """

    def __init__(
        self,
        supabase: Client,
        storage_dir: Optional[Union[str, Path]] = None,
        client_factory: AuthClientFactory = SupabaseClient.create_auth_client,
    ):
        self.supabase = supabase
        self.storage_dir = storage_dir
        self.client_factory = client_factory

    def member_storage(self, email: str) -> Optional[PreferenceAwareStorage]:
        if self.storage_dir is None:
            return None
        return member_storage(self.storage_dir, email)

    def _member_auth(self, email: str):
        return self.client_factory(self.member_storage(email)).auth

    def send_magic_link(self, email: str, remember_me: bool = True) -> None:
        """Email a sign-in link / one-time code to an existing member"""
        storage = self.member_storage(email)
        if storage is not None:
            storage.preference.set(remember_me)
        options: Dict[str, Any] = {"should_create_user": False}
        if settings.email_redirect_url:
            options["email_redirect_to"] = settings.email_redirect_url
        try:
            self.client_factory(storage).auth.sign_in_with_otp({"email": email, "options": options})
        except Exception as e:
            logger.warning(f"Sign in failed for {email}: {e}")
            raise AuthError(_error_message(e, "Failed to send verification code"))

    def sign_up(self, email: str, community_password: str) -> RegisterResponse:
        """Register a new member; gated by the shared community password"""
        expected = settings.community_password
        if not expected or not hmac.compare_digest(community_password.encode(), expected.encode()):
            raise AuthError("Invalid community password")
        try:
            # Members sign in by email link only; this password is never used
            auth_response = self._member_auth(email).sign_up({
                "email": email,
                "password": secrets.token_urlsafe(32),
            })
        except Exception as e:
            error_message = _error_message(e, "Registration failed")
            logger.warning(f"Sign up failed for {email}: {error_message}")
            if "already registered" in error_message.lower() or "already exists" in error_message.lower():
                raise AuthError("User already exists")
            raise AuthError(error_message)

        if not auth_response.user:
            raise AuthError("Failed to register user")

        return RegisterResponse(
            user_id=auth_response.user.id,
            email=auth_response.user.email or email,
            message="Account created. Check your email to sign in.",
        )

    def verify_code(self, email: str, code: str) -> TokenResponse:
        """Exchange the emailed one-time code for a session"""
        code = (code or "").strip()
        if not OTP_PATTERN.match(code):
            raise AuthError("Verification code must be 6 digits")
        try:
            auth_response = self._member_auth(email).verify_otp({
                "email": email,
                "token": code,
                "type": "email",
            })
        except Exception as e:
            logger.info(f"Verification failed for {email}: {e}")
            raise AuthError(_error_message(e, "Invalid verification code"))

        if not auth_response.user or not auth_response.session:
            raise AuthError("Invalid verification code")

        return TokenResponse(
            access_token=auth_response.session.access_token,
            refresh_token=auth_response.session.refresh_token,
            token_type="bearer",
            user_id=auth_response.user.id,
            email=auth_response.user.email or email,
        )

    def resend_code(self, email: str) -> None:
        try:
            self._member_auth(email).sign_in_with_otp({"email": email})
        except Exception as e:
            logger.warning(f"Resend failed for {email}: {e}")
            raise AuthError(_error_message(e, "Failed to resend code"))

    def get_current_session(self, token: str) -> SessionResponse:
        """The caller's own session, resolved from their bearer token"""
        user = self.get_current_user(token)
        return SessionResponse(user_id=user["id"], email=user.get("email"), expires_at=_token_expiry(token))

    def get_current_user(self, token: str) -> Dict[str, Any]:
        """Get current user details from Supabase Auth token. Uses short TTL cache to reduce auth API calls."""
        try:
            cache_key = _cache_key(token)
            now = time.monotonic()
            if cache_key in _AUTH_USER_CACHE:
                user_data, expiry = _AUTH_USER_CACHE[cache_key]
                if now < expiry:
                    return user_data
                del _AUTH_USER_CACHE[cache_key]
            user_response = self.supabase.auth.get_user(jwt=token)
            if not user_response or not user_response.user:
                raise AuthError("Invalid or expired token")
            user = user_response.user
            user_data = {
                "id": user.id,
                "email": user.email,
                "user_metadata": user.user_metadata or {},
                "created_at": user.created_at,
            }
            if len(_AUTH_USER_CACHE) < _AUTH_CACHE_MAX_SIZE:
                _AUTH_USER_CACHE[cache_key] = (user_data, now + _AUTH_CACHE_TTL_SEC)
            return user_data
        except AuthError:
            raise
        except Exception as e:
            error_msg = str(e)
            if "JWT" in error_msg or "expired" in error_msg.lower() or "invalid" in error_msg.lower():
                raise AuthError("Invalid or expired token")
            raise AuthError("Authentication failed")

    def forget_token(self, token: str) -> None:
        _AUTH_USER_CACHE.pop(_cache_key(token), None)

    def sign_out(self, token: str, email: Optional[str] = None) -> bool:
        """Revoke this member's session only, and forget any session stored for them"""
        self.forget_token(token)
        storage = self.member_storage(email) if email else None
        if storage is not None:
            storage.clear()
        try:
            self.supabase.auth.admin.sign_out(token, "local")
            return True
        except Exception as e:
            logger.warning(f"Sign out failed: {e}")
            return False
