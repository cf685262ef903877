from fastapi import APIRouter, Depends, Query, status
from typing import List, Optional

from prompt_manager.dependencies import get_folder_repository, get_item_repository
from prompt_manager.routers.auth import get_current_user
from prompt_manager.schemas.item import ItemCreate, ItemOut, ItemUpdate, ReorderRequest, ShareOut, ShareRequest
from prompt_manager.services.folder_service import FolderRepository
from prompt_manager.services.folder_tree import descendant_ids
from prompt_manager.services.identity_service import CurrentUser
from prompt_manager.services.item_service import ItemRepository
from prompt_manager.services.keyword_service import enrich_tags

router = APIRouter(prefix="/api/v1/items", tags=["Items"])


@router.get("/", response_model=List[ItemOut])
async def list_items(
    folder_id: Optional[str] = Query(None, description="Limit to this folder"),
    include_descendants: bool = Query(True, description="Also include items of subfolders"),
    user: CurrentUser = Depends(get_current_user),
    items: ItemRepository = Depends(get_item_repository),
    folders: FolderRepository = Depends(get_folder_repository),
):
    """
    List items ordered by manual position, newest first within a position.

    Without ``folder_id`` every item of the user is returned.
    """
    if folder_id is None:
        return await items.list(user.id)

    scope = {folder_id}
    if include_descendants:
        scope.update(descendant_ids(folder_id, await folders.list_folders(user.id)))
    return await items.list(user.id, scope)


@router.post("/", response_model=ItemOut, status_code=status.HTTP_201_CREATED)
async def create_item(
    body: ItemCreate,
    merge_hashtags: bool = Query(False, description="Add #hashtags found in title/content to tags"),
    suggest_keyword: bool = Query(False, description="Ask the keyword model for one extra tag"),
    user: CurrentUser = Depends(get_current_user),
    items: ItemRepository = Depends(get_item_repository),
):
    tags = await enrich_tags(body.title, body.content, body.tags, merge_hashtags, suggest_keyword)
    return await items.create(user.id, body.model_copy(update={"tags": tags}))


@router.put("/order", response_model=List[ItemOut])
async def reorder_items(
    body: ReorderRequest,
    user: CurrentUser = Depends(get_current_user),
    items: ItemRepository = Depends(get_item_repository),
):
    """Persist a manual order: each item's position becomes its sort_order."""
    ordered = await items.get_many(user.id, body.ids)
    return await items.reorder(user.id, ordered)


@router.get("/{item_id}", response_model=ItemOut)
async def get_item(
    item_id: str,
    user: CurrentUser = Depends(get_current_user),
    items: ItemRepository = Depends(get_item_repository),
):
    return await items.get(user.id, item_id)


@router.patch("/{item_id}", response_model=ItemOut)
async def update_item(
    item_id: str,
    body: ItemUpdate,
    merge_hashtags: bool = Query(False),
    user: CurrentUser = Depends(get_current_user),
    items: ItemRepository = Depends(get_item_repository),
):
    changes = body.model_dump(exclude_unset=True)
    if merge_hashtags:
        current = await items.get(user.id, item_id)
        changes["tags"] = await enrich_tags(
            changes.get("title", current.title),
            changes.get("content", current.content),
            changes.get("tags", current.tags),
            merge_hashtags=True,
        )
    return await items.update(user.id, item_id, changes)


@router.delete("/{item_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_item(
    item_id: str,
    user: CurrentUser = Depends(get_current_user),
    items: ItemRepository = Depends(get_item_repository),
):
    await items.delete(user.id, item_id)


@router.post("/{item_id}/share", response_model=ShareOut)
async def share_item(
    item_id: str,
    body: ShareRequest,
    user: CurrentUser = Depends(get_current_user),
    items: ItemRepository = Depends(get_item_repository),
):
    """Enable (with a fresh token) or disable public sharing."""
    token = await items.set_share(user.id, item_id, body.enable)
    return ShareOut(is_public=body.enable, share_token=token)
