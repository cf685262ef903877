from pydantic import BaseModel
from typing import Optional


class PageInfoRequest(BaseModel):
    url: str


class PageInfo(BaseModel):
    thumbnail: Optional[str] = None
    title: Optional[str] = None


class KeywordRequest(BaseModel):
    title: Optional[str] = None
    content: Optional[str] = None


class KeywordOut(BaseModel):
    keyword: Optional[str] = None
