from enum import Enum
from pydantic import BaseModel
from typing import Dict, List, Optional
from datetime import datetime


class FolderKind(str, Enum):
    PROMPT = "prompt"
    WEBSITE = "website"


class FolderCreate(BaseModel):
    name: str
    parent_id: Optional[str] = None
    kind: FolderKind = FolderKind.PROMPT


class FolderRename(BaseModel):
    name: str


class FolderOut(BaseModel):
    id: str
    user_id: str
    name: str
    parent_id: Optional[str] = None
    folder_kind: FolderKind = FolderKind.PROMPT
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True
        frozen = True


class FolderNode(BaseModel):
    """A folder with its computed children. Never persisted."""
    id: str
    name: str
    parent_id: Optional[str] = None
    folder_kind: FolderKind = FolderKind.PROMPT
    children: List["FolderNode"] = []


class FolderCounts(BaseModel):
    # direct item count per folder id
    counts: Dict[str, int]
    # own count plus the counts of every descendant
    totals: Dict[str, int]
