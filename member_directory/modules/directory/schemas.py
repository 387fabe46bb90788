from pydantic import BaseModel
from typing import Optional, List
from enum import Enum

from member_directory.modules.profiles.schemas import Profile

ALL_CATEGORIES = "all"


class Facet(str, Enum):
    ALL = "all"
    OPEN_TO = "open_to"
    CAN_PROVIDE = "can_provide"


class SortKey(str, Enum):
    CREATED_AT = "created_at"
    DISPLAY_NAME = "display_name"


class DirectoryFilters(BaseModel):
    search: str = ""
    category: str = ALL_CATEGORIES
    facet: Facet = Facet.ALL
    sort: SortKey = SortKey.CREATED_AT

    class Config:
        frozen = True


class DirectoryView(BaseModel):
    filters: DirectoryFilters
    profiles: List[Profile]
    total: int  # profiles in this view
    source_total: int  # profiles loaded before filtering
    read_error: Optional[str] = None  # set when the last reload failed


class MutationKind(str, Enum):
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"
    SETUP = "setup"


class MutationPhase(str, Enum):
    INTENT_APPLIED = "intent_applied"  # form closed, remote call not yet confirmed
    CONFIRMED = "confirmed"
    FAILED = "failed"


class MutationResponse(BaseModel):
    kind: MutationKind
    phase: MutationPhase
    user_id: str
    profile: Optional[Profile] = None
    visible: bool = False  # whether the reload observed the write
    error: Optional[str] = None
