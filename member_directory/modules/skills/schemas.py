from pydantic import BaseModel
from typing import List, Union


class Skill(BaseModel):
    id: Union[int, str]
    name: str
    category: str

    class Config:
        from_attributes = True


class SkillSuggestions(BaseModel):
    query: str
    suggestions: List[str]
