"""
Identity provider access: the current user record and its free-form metadata.

The metadata document doubles as the store for folder kinds
(``website_folder_ids``). Reads and writes are separate calls; an update is a
read-merge-write with no locking, so concurrent writers race and the last one
wins.
"""
import logging
from typing import Any, Dict, Optional

from pydantic import BaseModel
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from prompt_manager.exceptions import NotFoundError, StoreUnavailable
from prompt_manager.models.user import User

logger = logging.getLogger(__name__)


class CurrentUser(BaseModel):
    id: str
    metadata: Dict[str, Any] = {}


class IdentityProvider:
    def __init__(self, db: Session):
        self.db = db

    async def get_user(self, user_id: str) -> Optional[CurrentUser]:
        try:
            user = self.db.query(User).filter(User.id == user_id).first()
        except SQLAlchemyError as exc:
            logger.error("get_user(%s) failed: %s", user_id, exc)
            raise StoreUnavailable("identity provider unavailable") from exc
        if user is None:
            return None
        return CurrentUser(id=user.id, metadata=dict(user.user_metadata or {}))

    async def update_user(self, user_id: str, metadata_patch: Dict[str, Any]) -> CurrentUser:
        """Shallow-merge ``metadata_patch`` into the user's metadata."""
        try:
            user = self.db.query(User).filter(User.id == user_id).first()
            if user is None:
                raise NotFoundError(f"user {user_id} not found")
            merged = dict(user.user_metadata or {})
            merged.update(metadata_patch)
            # reassign so the JSON column is flagged dirty
            user.user_metadata = merged
            self.db.commit()
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.error("update_user(%s) failed: %s", user_id, exc)
            raise StoreUnavailable("identity provider unavailable") from exc
        return CurrentUser(id=user.id, metadata=merged)
