from fastapi import APIRouter, Depends, Query
from member_directory.modules.skills.schemas import Skill, SkillSuggestions
from member_directory.modules.skills.service import suggest_skills
from member_directory.modules.directory.controller import DirectoryController
from member_directory.core.dependencies import get_loaded_controller
from typing import List

router = APIRouter(prefix="/skills", tags=["skills"])


@router.get("", response_model=List[Skill])
async def list_skills(controller: DirectoryController = Depends(get_loaded_controller)):
    """Skill taxonomy, by category"""
    return controller.skills


@router.get("/suggest", response_model=SkillSuggestions)
async def suggest(
    q: str = "",
    selected: List[str] = Query(default=[]),
    limit: int = Query(default=10, ge=1, le=50),
    controller: DirectoryController = Depends(get_loaded_controller)
):
    """Autocomplete skill names from the taxonomy"""
    return SkillSuggestions(query=q, suggestions=suggest_skills(controller.skills, q, selected, limit))
