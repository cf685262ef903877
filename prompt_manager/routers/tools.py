from fastapi import APIRouter, Depends, HTTPException
import logging

from prompt_manager.routers.auth import get_current_user
from prompt_manager.schemas.tool import KeywordOut, KeywordRequest, PageInfo, PageInfoRequest
from prompt_manager.services.identity_service import CurrentUser
from prompt_manager.services.keyword_service import suggest_keyword
from prompt_manager.services.page_info_service import fetch_page_info, normalize_url

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/tools", tags=["Tools"])


@router.post("/fetch-thumbnail", response_model=PageInfo)
async def fetch_thumbnail(body: PageInfoRequest, user: CurrentUser = Depends(get_current_user)):
    """Preview image and title for a bookmark URL. Empty when nothing could be fetched."""
    if normalize_url(body.url) is None:
        raise HTTPException(status_code=400, detail="A http(s) URL is required")
    return await fetch_page_info(body.url)


@router.post("/extract-keyword", response_model=KeywordOut)
async def extract_keyword(body: KeywordRequest, user: CurrentUser = Depends(get_current_user)):
    """Suggest one topic word for a prompt."""
    if not "\n".join(part for part in (body.title, body.content) if part).strip():
        raise HTTPException(status_code=400, detail="Title or content is required")
    return KeywordOut(keyword=await suggest_keyword(body.title, body.content))
