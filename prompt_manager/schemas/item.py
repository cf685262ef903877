from pydantic import BaseModel
from typing import List, Optional
from datetime import datetime


class ItemCreate(BaseModel):
    title: str
    content: str = ""
    folder_id: Optional[str] = None
    tags: List[str] = []
    image_url: Optional[str] = None
    link_url: Optional[str] = None
    sort_order: int = 0


class ItemUpdate(BaseModel):
    title: Optional[str] = None
    content: Optional[str] = None
    folder_id: Optional[str] = None
    tags: Optional[List[str]] = None
    image_url: Optional[str] = None
    link_url: Optional[str] = None
    sort_order: Optional[int] = None

    class Config:
        extra = "forbid"


class ItemOut(BaseModel):
    id: str
    user_id: str
    folder_id: Optional[str] = None
    title: str
    content: str
    tags: List[str] = []
    image_url: Optional[str] = None
    link_url: Optional[str] = None
    sort_order: int = 0
    is_public: bool = False
    share_token: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True
        frozen = True


class SharedItemOut(BaseModel):
    """Public view of a shared item."""
    id: str
    title: str
    content: str
    tags: List[str] = []
    image_url: Optional[str] = None

    class Config:
        from_attributes = True


class ShareRequest(BaseModel):
    enable: bool


class ShareOut(BaseModel):
    is_public: bool
    share_token: Optional[str] = None


class ReorderRequest(BaseModel):
    ids: List[str]
