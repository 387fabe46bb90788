from fastapi import APIRouter, Depends
from member_directory.modules.profiles.schemas import Profile, ProfileForm, ProfileSetupForm
from member_directory.modules.directory.schemas import MutationResponse
from member_directory.modules.directory.controller import DirectoryController
from member_directory.core.dependencies import get_loaded_controller
from typing import List

router = APIRouter(prefix="/profiles", tags=["profiles"])


@router.get("", response_model=List[Profile])
async def list_profiles(controller: DirectoryController = Depends(get_loaded_controller)):
    """All visible profiles, newest first, unfiltered"""
    return controller.profiles


@router.post("", response_model=MutationResponse, status_code=201)
async def create_profile(
    form: ProfileForm,
    controller: DirectoryController = Depends(get_loaded_controller)
):
    """Create the signed-in member's profile from the add form"""
    return await controller.create_profile(form)


@router.post("/setup", response_model=MutationResponse, status_code=201)
async def complete_profile_setup(
    form: ProfileSetupForm,
    controller: DirectoryController = Depends(get_loaded_controller)
):
    """First-login profile setup"""
    return await controller.complete_setup(form)


@router.get("/{user_id}", response_model=Profile)
async def get_profile(
    user_id: str,
    controller: DirectoryController = Depends(get_loaded_controller)
):
    """Profile detail"""
    return controller.find_profile(user_id)


@router.get("/{user_id}/form", response_model=ProfileForm)
async def edit_profile_form(
    user_id: str,
    controller: DirectoryController = Depends(get_loaded_controller)
):
    """Prefilled edit form (own profile only)"""
    return controller.open_edit_form(user_id)


@router.put("/{user_id}", response_model=MutationResponse)
async def update_profile(
    user_id: str,
    form: ProfileForm,
    controller: DirectoryController = Depends(get_loaded_controller)
):
    """Update own profile"""
    return await controller.update_profile(user_id, form)


@router.delete("/{user_id}", status_code=204)
async def delete_profile(
    user_id: str,
    controller: DirectoryController = Depends(get_loaded_controller)
):
    """Delete own profile"""
    await controller.delete_profile(user_id)
    return None
