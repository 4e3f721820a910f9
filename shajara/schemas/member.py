from pydantic import BaseModel, ConfigDict
from datetime import datetime
from typing import Optional
from shajara.models.member import RelationType

class MemberBase(BaseModel):
    full_name: str
    birth_year: Optional[int] = None
    death_year: Optional[int] = None
    relation_type: RelationType
    is_private: bool = False
    notes: Optional[str] = None

class MemberResponse(MemberBase):
    id: int
    tree_id: Optional[int] = None
    user_id: int
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)
