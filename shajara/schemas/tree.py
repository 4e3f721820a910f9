from pydantic import BaseModel

class TreeStats(BaseModel):
    total_members: int = 0
    parents: int = 0
    children: int = 0
    siblings: int = 0
    spouses: int = 0

class TreeTextResponse(BaseModel):
    tree_id: int
    text: str
    stats: TreeStats
