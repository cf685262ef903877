import os

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("LOG_FILE", "")
os.environ.setdefault("CHANGE_FEED_REDIS", "false")

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from prompt_manager.database import Base
from prompt_manager.models import folder, item, user  # noqa: F401
from prompt_manager.models.user import User
from prompt_manager.schemas.folder import FolderOut
from prompt_manager.schemas.item import ItemCreate
from prompt_manager.services.change_feed import ChangeFeed
from prompt_manager.services.folder_service import FolderRepository
from prompt_manager.services.identity_service import IdentityProvider
from prompt_manager.services.item_service import ItemRepository


@pytest.fixture
def db():
    """Fresh in-memory database per test."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    session = sessionmaker(autocommit=False, autoflush=False, bind=engine)()
    yield session
    session.close()
    engine.dispose()


def _make_user(db, email):
    u = User(email=email, full_name=email.split("@")[0], user_metadata={})
    db.add(u)
    db.commit()
    return u.id


@pytest.fixture
def owner(db):
    return _make_user(db, "owner@example.com")


@pytest.fixture
def other_owner(db):
    return _make_user(db, "other@example.com")


@pytest.fixture
def feed():
    return ChangeFeed()


@pytest.fixture
def identity(db):
    return IdentityProvider(db)


@pytest.fixture
def items(db, feed):
    return ItemRepository(db, feed)


@pytest.fixture
def folders(db, identity, items):
    return FolderRepository(db, identity, items)


def folder_out(folder_id, parent_id=None, name=None):
    """Lightweight folder record for the pure tree helpers."""
    return FolderOut(id=folder_id, user_id="u1", name=name or folder_id, parent_id=parent_id)


def new_item(title, **values):
    return ItemCreate(title=title, **values)
