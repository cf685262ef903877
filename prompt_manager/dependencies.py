"""FastAPI dependencies wiring the repositories to the request's session."""
from fastapi import Depends
from sqlalchemy.orm import Session
from starlette.requests import HTTPConnection

from prompt_manager.database import get_db
from prompt_manager.services.change_feed import ChangeFeed
from prompt_manager.services.folder_service import FolderRepository
from prompt_manager.services.identity_service import IdentityProvider
from prompt_manager.services.item_service import ItemRepository
from prompt_manager.services.search_service import SearchEngine


def get_change_feed(connection: HTTPConnection) -> ChangeFeed:
    return connection.app.state.change_feed


def get_item_repository(
    db: Session = Depends(get_db),
    feed: ChangeFeed = Depends(get_change_feed),
) -> ItemRepository:
    return ItemRepository(db, feed)


def get_folder_repository(
    db: Session = Depends(get_db),
    items: ItemRepository = Depends(get_item_repository),
) -> FolderRepository:
    return FolderRepository(db, IdentityProvider(db), items)


def get_search_engine(items: ItemRepository = Depends(get_item_repository)) -> SearchEngine:
    return SearchEngine(items)
