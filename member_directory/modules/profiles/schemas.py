from pydantic import BaseModel, Field, field_validator
from typing import Optional, List, Literal, Union, Dict, Any
from datetime import datetime, timezone
from enum import Enum


class OpportunityCategory(str, Enum):
    FULL_TIME_JOB_OPPORTUNITIES = "full_time_job_opportunities"
    PART_TIME_JOB_OPPORTUNITIES = "part_time_job_opportunities"
    COFOUNDER_ROLES = "cofounder_roles"
    CONSULTING = "consulting"
    CONTRACT_GIGS = "contract_gigs"
    MENTORING_OTHERS = "mentoring_others"
    BEING_MENTORED = "being_mentored"
    INTERNSHIPS = "internships"

    @property
    def label(self) -> str:
        return format_category(self.value)


def format_category(tag: str) -> str:
    """'mentoring_others' -> 'Mentoring Others'"""
    return " ".join(word[:1].upper() + word[1:] for word in tag.replace("_", " ").split(" "))


ContactMethod = Literal["slack", "email"]

CATEGORY_VALUES = frozenset(c.value for c in OpportunityCategory)


def _parse_timestamp(value: Any) -> Optional[datetime]:
    """Lenient timestamp read; anything unparseable becomes None."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str):
        try:
            parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return None
    else:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def parse_skills(raw: str) -> List[str]:
    """Comma-separated form input -> trimmed, non-empty skill list."""
    return [s.strip() for s in (raw or "").split(",") if s.strip()]


def _blank_to_none(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip()
    return value or None


class Profile(BaseModel):
    id: Optional[Union[int, str]] = None
    user_id: str
    display_name: str
    background: str = ""
    bio: Optional[str] = None
    open_to: List[str] = Field(default_factory=list)
    can_provide: List[str] = Field(default_factory=list)
    contact_method: ContactMethod = "slack"
    contact_email: Optional[str] = None
    slack_handle: Optional[str] = None
    linkedin_url: Optional[str] = None
    twitter_url: Optional[str] = None
    website_url: Optional[str] = None
    location: Optional[str] = None
    is_visible: bool = True
    skills: List[str] = Field(default_factory=list)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True

    @field_validator("open_to", "can_provide", "skills", mode="before")
    @classmethod
    def _missing_list_is_empty(cls, value):
        return [] if value is None else value

    @field_validator("background", mode="before")
    @classmethod
    def _missing_background_is_empty(cls, value):
        return "" if value is None else value

    @field_validator("created_at", "updated_at", mode="before")
    @classmethod
    def _lenient_timestamp(cls, value):
        return _parse_timestamp(value)

    def is_owned_by(self, user_id: Optional[str]) -> bool:
        return user_id is not None and self.user_id == user_id


class ProfileCreate(BaseModel):
    """Row sent on insert; timestamps are assigned by the store."""
    user_id: str
    display_name: str
    background: str = ""
    bio: Optional[str] = None
    open_to: List[str] = Field(default_factory=list)
    can_provide: List[str] = Field(default_factory=list)
    contact_method: ContactMethod = "slack"
    slack_handle: Optional[str] = None
    contact_email: Optional[str] = None
    linkedin_url: Optional[str] = None
    twitter_url: Optional[str] = None
    website_url: Optional[str] = None
    location: Optional[str] = None
    is_visible: bool = True
    skills: List[str] = Field(default_factory=list)


class ProfileUpdate(BaseModel):
    """Partial update; only fields explicitly set are considered."""
    display_name: Optional[str] = None
    background: Optional[str] = None
    bio: Optional[str] = None
    open_to: Optional[List[str]] = None
    can_provide: Optional[List[str]] = None
    contact_method: Optional[ContactMethod] = None
    slack_handle: Optional[str] = None
    contact_email: Optional[str] = None
    linkedin_url: Optional[str] = None
    twitter_url: Optional[str] = None
    website_url: Optional[str] = None
    location: Optional[str] = None
    skills: Optional[List[str]] = None


class ProfileForm(BaseModel):
    """Add/edit form as submitted by a member."""
    display_name: str = Field(min_length=1)
    skills: str = ""  # comma-separated
    background: str = ""
    open_to: List[str] = Field(default_factory=list)
    can_provide: List[str] = Field(default_factory=list)
    contact_method: ContactMethod = "slack"
    slack_handle: Optional[str] = None
    contact_email: Optional[str] = None

    @field_validator("display_name")
    @classmethod
    def _display_name_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("display_name must not be blank")
        return value.strip()

    @field_validator("open_to", "can_provide", mode="before")
    @classmethod
    def _known_categories(cls, value):
        value = [] if value is None else value
        unknown = [v for v in value if v not in CATEGORY_VALUES]
        if unknown:
            raise ValueError(f"Unknown opportunity categories: {', '.join(unknown)}")
        return value

    def contact_fields(self, email: Optional[str] = None) -> Dict[str, Optional[str]]:
        """Only the field matching contact_method is kept; the other is null."""
        if self.contact_method == "slack":
            return {"slack_handle": _blank_to_none(self.slack_handle), "contact_email": None}
        return {"slack_handle": None, "contact_email": _blank_to_none(email or self.contact_email)}

    def to_profile_create(self, user_id: str) -> ProfileCreate:
        return ProfileCreate(
            user_id=user_id,
            display_name=self.display_name,
            skills=parse_skills(self.skills),
            background=self.background,
            open_to=list(self.open_to),
            can_provide=list(self.can_provide or []),
            contact_method=self.contact_method,
            is_visible=True,
            **self.contact_fields(),
        )

    @classmethod
    def from_profile(cls, profile: Profile) -> "ProfileForm":
        """Prefill for editing an existing profile."""
        return cls(
            display_name=profile.display_name,
            skills=", ".join(profile.skills),
            background=profile.background,
            open_to=[c for c in profile.open_to if c in CATEGORY_VALUES],
            can_provide=[c for c in profile.can_provide if c in CATEGORY_VALUES],
            contact_method=profile.contact_method,
            slack_handle=profile.slack_handle or "",
            contact_email=profile.contact_email or "",
        )


class ProfileSetupForm(ProfileForm):
    """First-login setup; also collects the optional long-form fields."""
    bio: Optional[str] = None
    linkedin_url: Optional[str] = None
    twitter_url: Optional[str] = None
    website_url: Optional[str] = None
    location: Optional[str] = None

    def to_profile_create(self, user_id: str, email: Optional[str] = None) -> ProfileCreate:
        # Email contact comes from the signed-in identity, not the form
        return ProfileCreate(
            user_id=user_id,
            display_name=self.display_name,
            skills=parse_skills(self.skills),
            background=self.background,
            bio=_blank_to_none(self.bio),
            open_to=list(self.open_to),
            can_provide=list(self.can_provide or []),
            contact_method=self.contact_method,
            linkedin_url=_blank_to_none(self.linkedin_url),
            twitter_url=_blank_to_none(self.twitter_url),
            website_url=_blank_to_none(self.website_url),
            location=_blank_to_none(self.location),
            is_visible=True,
            **self.contact_fields(email=email),
        )


class CategoryOption(BaseModel):
    value: str
    label: str
