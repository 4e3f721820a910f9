from pydantic import BaseModel, ConfigDict
from datetime import datetime
from typing import List, Optional
from shajara.models.merge import MergeStatus
from shajara.schemas.member import MemberResponse

class SharedAncestorResponse(BaseModel):
    source_member: MemberResponse
    target_member: MemberResponse

class SharedAncestorsResponse(BaseModel):
    source_tree_id: int
    target_tree_id: int
    pairs: List[SharedAncestorResponse] = []

class MergeResponse(BaseModel):
    id: int
    source_tree_id: Optional[int] = None
    target_tree_id: Optional[int] = None
    requester_id: int
    approver_id: Optional[int] = None
    status: MergeStatus
    created_at: Optional[datetime] = None
    responded_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)
