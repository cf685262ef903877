"""
Folder API endpoints: the folder list and tree, CRUD, breadcrumbs and
per-folder item counts (one-shot and live over a websocket).
"""
import logging
from typing import Dict, List

from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect, status

from prompt_manager.database import sessionlocal
from prompt_manager.dependencies import get_folder_repository, get_item_repository
from prompt_manager.routers.auth import get_current_user
from prompt_manager.routers.websocket import authenticate_websocket
from prompt_manager.schemas.folder import FolderCounts, FolderCreate, FolderNode, FolderOut, FolderRename
from prompt_manager.services.count_service import CountAggregator
from prompt_manager.services.folder_tree import ancestor_chain, build_forest
from prompt_manager.services.folder_service import FolderRepository
from prompt_manager.services.identity_service import CurrentUser
from prompt_manager.services.item_service import ItemRepository

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/folders", tags=["Folders"])


@router.get("/", response_model=List[FolderOut])
async def list_folders(
    user: CurrentUser = Depends(get_current_user),
    folders: FolderRepository = Depends(get_folder_repository),
):
    """All folders of the current user, flat and sorted by name."""
    return await folders.load(user.id)


@router.get("/tree", response_model=List[FolderNode])
async def folder_tree(
    user: CurrentUser = Depends(get_current_user),
    folders: FolderRepository = Depends(get_folder_repository),
):
    return build_forest(await folders.load(user.id))


@router.post("/", response_model=FolderOut, status_code=status.HTTP_201_CREATED)
async def create_folder(
    body: FolderCreate,
    user: CurrentUser = Depends(get_current_user),
    folders: FolderRepository = Depends(get_folder_repository),
):
    return await folders.create_folder(user.id, body.name, body.parent_id, body.kind)


@router.patch("/{folder_id}", response_model=FolderOut)
async def rename_folder(
    folder_id: str,
    body: FolderRename,
    user: CurrentUser = Depends(get_current_user),
    folders: FolderRepository = Depends(get_folder_repository),
):
    return await folders.rename_folder(user.id, folder_id, body.name)


@router.delete("/{folder_id}")
async def delete_folder(
    folder_id: str,
    user: CurrentUser = Depends(get_current_user),
    folders: FolderRepository = Depends(get_folder_repository),
):
    """Delete a folder with all of its subfolders. Their items become unfiled."""
    deleted = await folders.delete_folder(user.id, folder_id)
    return {"deleted": deleted}


@router.post("/{folder_id}/kind", response_model=FolderOut)
async def record_website_kind(
    folder_id: str,
    user: CurrentUser = Depends(get_current_user),
    folders: FolderRepository = Depends(get_folder_repository),
):
    """Retry recording a folder as a website folder after a partial create."""
    await folders.get_folder(user.id, folder_id)
    await folders.tag_website_folder(user.id, folder_id)
    return await folders.get_folder(user.id, folder_id)


@router.get("/{folder_id}/breadcrumb", response_model=List[str])
async def breadcrumb(
    folder_id: str,
    user: CurrentUser = Depends(get_current_user),
    folders: FolderRepository = Depends(get_folder_repository),
):
    flat = await folders.list_folders(user.id)
    return ancestor_chain(folder_id, flat)


@router.get("/counts", response_model=FolderCounts)
async def folder_counts(
    user: CurrentUser = Depends(get_current_user),
    folders: FolderRepository = Depends(get_folder_repository),
    items: ItemRepository = Depends(get_item_repository),
):
    """Direct item count per folder plus descendant-inclusive totals."""
    aggregator = CountAggregator(items, None, user.id)
    counts = await aggregator.refresh()
    flat = await folders.list_folders(user.id)
    return FolderCounts(counts=dict(counts), totals=aggregator.totals(flat))


@router.websocket("/counts/live")
async def live_folder_counts(websocket: WebSocket):
    """Push the direct count map on connect and after every item change."""
    user = await authenticate_websocket(websocket)
    if user is None:
        return

    db = sessionlocal()
    feed = websocket.app.state.change_feed

    async def push(counts: Dict[str, int]):
        await websocket.send_json({"counts": dict(counts)})

    try:
        async with CountAggregator(ItemRepository(db, feed), feed, user.id, on_change=push):
            while True:
                # client messages are only keep-alives
                await websocket.receive_text()
    except WebSocketDisconnect:
        logger.info("Live counts closed for %s", user.id)
    finally:
        db.close()
