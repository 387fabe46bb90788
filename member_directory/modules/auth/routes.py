from fastapi import APIRouter, Depends
from fastapi.concurrency import run_in_threadpool
from member_directory.modules.auth.schemas import (
    SignInRequest, SignUpRequest, VerifyRequest, ResendRequest,
    MessageResponse, TokenResponse, RegisterResponse, SessionResponse, MeResponse
)
from member_directory.modules.auth.service import AuthService
from member_directory.core.dependencies import (
    get_auth_service, get_current_token, get_current_identity, get_directory_controller
)
from member_directory.core.session import SessionIdentity
from member_directory.modules.directory import registry as directory_registry
from member_directory.modules.directory.controller import DirectoryController

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/sign-in", response_model=MessageResponse)
async def sign_in(
    request: SignInRequest,
    service: AuthService = Depends(get_auth_service)
):
    """Email a magic link / one-time code to an existing member"""
    await run_in_threadpool(service.send_magic_link, request.email, request.remember_me)
    return MessageResponse(message="Check your email for a magic link to sign in!")


@router.post("/sign-up", response_model=RegisterResponse, status_code=201)
async def sign_up(
    request: SignUpRequest,
    service: AuthService = Depends(get_auth_service)
):
    """Register with the community password"""
    return await run_in_threadpool(service.sign_up, request.email, request.community_password)


@router.post("/verify", response_model=TokenResponse)
async def verify(
    request: VerifyRequest,
    service: AuthService = Depends(get_auth_service)
):
    """Exchange the emailed six-digit code for an access token"""
    return await run_in_threadpool(service.verify_code, request.email, request.code)


@router.post("/resend", response_model=MessageResponse)
async def resend(
    request: ResendRequest,
    service: AuthService = Depends(get_auth_service)
):
    """Send a fresh code"""
    await run_in_threadpool(service.resend_code, request.email)
    return MessageResponse(message="A new code is on its way")


@router.get("/session", response_model=SessionResponse)
async def current_session(
    token: str = Depends(get_current_token),
    service: AuthService = Depends(get_auth_service)
):
    """The caller's session: who the bearer token belongs to and when it expires"""
    return await run_in_threadpool(service.get_current_session, token)


@router.get("/me", response_model=MeResponse)
async def me(
    identity: SessionIdentity = Depends(get_current_identity),
    controller: DirectoryController = Depends(get_directory_controller),
):
    """Current member, and whether the first-login profile setup is still pending"""
    has_profile = await run_in_threadpool(controller.profile_store.has_profile, identity.user_id)
    return MeResponse(id=identity.user_id, email=identity.email, needs_profile_setup=not has_profile)


@router.post("/logout", response_model=MessageResponse)
async def logout(
    token: str = Depends(get_current_token),
    identity: SessionIdentity = Depends(get_current_identity),
    service: AuthService = Depends(get_auth_service)
):
    """Sign out and drop the member's cached directory"""
    directory_registry.drop(identity.user_id)
    await run_in_threadpool(service.sign_out, token, identity.email)
    return MessageResponse(message="Logged out successfully")
