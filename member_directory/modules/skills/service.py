"""
Read-only access to the ``skills`` table (id, name, category).

Profiles store skills as free text; this table only feeds autocomplete.
"""

import logging
from typing import Iterable, List, Optional, Sequence

from pydantic import ValidationError
from supabase import Client

from member_directory.core.exceptions import RemoteReadError
from member_directory.core.results import ReadResult
from member_directory.modules.skills.schemas import Skill

logger = logging.getLogger(__name__)

SKILLS_TABLE = "skills"


class SkillService:
    def __init__(self, supabase: Client):
        self.supabase = supabase

    def fetch_skills_result(self) -> ReadResult[List[Skill]]:
        """Skill taxonomy ordered by category, or the reason it could not be read"""
        try:
            result = self.supabase.table(SKILLS_TABLE)\
                .select("*")\
                .order("category", desc=False)\
                .execute()
        except Exception as e:
            error = RemoteReadError.from_exception(e)
            logger.error(f"Error fetching skills: {error.message} (code={error.code})")
            return ReadResult.failure(error, [])

        skills = []
        for row in result.data or []:
            try:
                skills.append(Skill(**row))
            except ValidationError as e:
                logger.warning(f"Skipping malformed skill row {row.get('id')}: {e}")
        return ReadResult.success(skills)

    def fetch_skills(self) -> List[Skill]:
        return self.fetch_skills_result().data


def suggest_skills(
    taxonomy: Sequence[Skill],
    query: str,
    selected: Optional[Iterable[str]] = None,
    limit: Optional[int] = 10,
) -> List[str]:
    """Taxonomy names containing query (case-insensitive), minus ones already chosen.

    Skills stay free text; suggestions never restrict what a profile may list.
    """
    needle = (query or "").strip().casefold()
    taken = {s.strip().casefold() for s in (selected or [])}
    names = []
    seen = set()
    for skill in taxonomy:
        key = skill.name.casefold()
        if key in taken or key in seen:
            continue
        if needle and needle not in key:
            continue
        seen.add(key)
        names.append(skill.name)
        if limit is not None and len(names) >= limit:
            break
    return names
