from enum import Enum
from pydantic import BaseModel
from typing import List, Optional

from prompt_manager.schemas.item import ItemOut


class SearchMode(str, Enum):
    IDLE = "idle"
    TAG = "tag"
    TEXT = "text"


class SearchHit(ItemOut):
    highlighted_title: Optional[str] = None
    highlighted_content: Optional[str] = None


class SearchResults(BaseModel):
    query: str
    mode: SearchMode
    items: List[SearchHit] = []
    is_hashtag_search: bool = False
    # set when the search backend failed and results were degraded to empty
    notice: Optional[str] = None
