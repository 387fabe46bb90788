from fastapi import APIRouter, Depends
from member_directory.modules.directory.schemas import DirectoryView, Facet, SortKey
from member_directory.modules.directory.controller import DirectoryController
from member_directory.modules.profiles.schemas import CategoryOption, OpportunityCategory
from member_directory.core.dependencies import get_loaded_controller
from typing import List, Optional

router = APIRouter(prefix="/directory", tags=["directory"])


@router.get("", response_model=DirectoryView)
async def get_directory(
    search: Optional[str] = None,
    category: Optional[str] = None,
    facet: Optional[Facet] = None,
    sort: Optional[SortKey] = None,
    controller: DirectoryController = Depends(get_loaded_controller)
):
    """Filtered, sorted directory; omitted parameters keep their current values"""
    return controller.set_filters(search=search, category=category, facet=facet, sort=sort)


@router.post("/reload", response_model=DirectoryView)
async def reload_directory(controller: DirectoryController = Depends(get_loaded_controller)):
    """Refetch profiles from the store and re-derive the view"""
    await controller.reload()
    return controller.snapshot()


@router.get("/categories", response_model=List[CategoryOption])
async def list_categories():
    """Opportunity categories usable as a filter or facet value"""
    return [CategoryOption(value=c.value, label=c.label) for c in OpportunityCategory]
