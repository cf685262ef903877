from fastapi import APIRouter, Depends, HTTPException

from prompt_manager.dependencies import get_item_repository
from prompt_manager.schemas.item import SharedItemOut
from prompt_manager.services.item_service import ItemRepository

router = APIRouter(prefix="/share", tags=["Share"])


@router.get("/{token}", response_model=SharedItemOut)
async def shared_item(token: str, items: ItemRepository = Depends(get_item_repository)):
    """Public read of a shared item. No authentication."""
    item = await items.get_shared(token)
    if item is None:
        # same answer for unknown tokens and unshared items
        raise HTTPException(status_code=404, detail="Not found")
    return item
