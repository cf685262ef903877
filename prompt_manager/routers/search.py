import logging

from fastapi import APIRouter, Depends, Query, WebSocket, WebSocketDisconnect

from prompt_manager.database import sessionlocal
from prompt_manager.dependencies import get_search_engine
from prompt_manager.routers.auth import get_current_user
from prompt_manager.routers.websocket import authenticate_websocket
from prompt_manager.schemas.search import SearchResults
from prompt_manager.services.identity_service import CurrentUser
from prompt_manager.services.item_service import ItemRepository
from prompt_manager.services.search_service import SearchEngine, SearchSession

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/search", tags=["Search"])


@router.get("/", response_model=SearchResults)
async def search(
    q: str = Query("", description="Text, or #tag for a partial tag search"),
    user: CurrentUser = Depends(get_current_user),
    engine: SearchEngine = Depends(get_search_engine),
):
    """
    Search across all of the user's items, ignoring folder scope.

    Failures do not produce an error status; the response is empty and
    carries a ``notice``.
    """
    return await engine.search(user.id, q)


@router.websocket("/live")
async def live_search(websocket: WebSocket):
    """
    Search-as-you-type. Each text frame is the full current query; results are
    sent once the query has been stable for the debounce window.
    """
    user = await authenticate_websocket(websocket)
    if user is None:
        return

    db = sessionlocal()

    async def push(results: SearchResults):
        await websocket.send_text(results.model_dump_json())

    session = SearchSession(SearchEngine(ItemRepository(db)), user.id, on_results=push)
    try:
        while True:
            session.set_query(await websocket.receive_text())
    except WebSocketDisconnect:
        logger.info("Live search closed for %s", user.id)
    finally:
        session.close()
        db.close()
