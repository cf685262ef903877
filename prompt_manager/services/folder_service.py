"""
Folder repository.

Folder rows live in the ``folders`` table; whether a folder is a website
folder is recorded separately in the owner's identity metadata under
``website_folder_ids``. Every operation here keeps both locations in step.
There is no transaction spanning the two, so a failed metadata write after a
successful row write is reported as ``PartialFailure``.
"""
import asyncio
import logging
from typing import List, Optional, Set

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from prompt_manager.config import settings
from prompt_manager.exceptions import NotFoundError, PartialFailure, StoreUnavailable, ValidationError
from prompt_manager.models.folder import Folder
from prompt_manager.schemas.folder import FolderKind, FolderOut
from prompt_manager.services.change_feed import UPDATE
from prompt_manager.services.folder_tree import descendant_ids
from prompt_manager.services.identity_service import IdentityProvider
from prompt_manager.services.item_service import ItemRepository

logger = logging.getLogger(__name__)

WEBSITE_IDS_KEY = "website_folder_ids"


def _out(folder: Folder, website_ids: Set[str]) -> FolderOut:
    return FolderOut(
        id=folder.id,
        user_id=folder.user_id,
        name=folder.name,
        parent_id=folder.parent_id,
        folder_kind=FolderKind.WEBSITE if folder.id in website_ids else FolderKind.PROMPT,
        created_at=folder.created_at,
        updated_at=folder.updated_at,
    )


class FolderRepository:
    def __init__(self, db: Session, identity: IdentityProvider, items: ItemRepository):
        self.db = db
        self.identity = identity
        self.items = items

    def _fail(self, operation: str, exc: Exception) -> StoreUnavailable:
        self.db.rollback()
        logger.error("%s failed: %s", operation, exc)
        return StoreUnavailable(f"{operation} failed")

    # -- kind side-channel ------------------------------------------------

    async def _load_website_ids(self, owner: str) -> Set[str]:
        user = await self.identity.get_user(owner)
        if user is None:
            return set()
        return set(user.metadata.get(WEBSITE_IDS_KEY) or [])

    async def _save_website_ids(self, owner: str, ids: Set[str]):
        await self.identity.update_user(owner, {WEBSITE_IDS_KEY: sorted(ids)})

    async def tag_website_folder(self, owner: str, folder_id: str):
        """Record ``folder_id`` as a website folder. Also the retry path after a PartialFailure."""
        ids = await self._load_website_ids(owner)
        if folder_id not in ids:
            ids.add(folder_id)
            await self._save_website_ids(owner, ids)

    # -- reads ------------------------------------------------------------

    async def _select_folders(self, owner: str) -> List[Folder]:
        try:
            return self.db.query(Folder).filter(Folder.user_id == owner).order_by(Folder.name).all()
        except SQLAlchemyError as exc:
            raise self._fail("list folders", exc) from exc

    async def list_folders(self, owner: str) -> List[FolderOut]:
        """
        All folders of ``owner`` annotated with their kind.

        Either read failing fails the whole call with StoreUnavailable.
        """
        rows, website_ids = await asyncio.gather(
            self._select_folders(owner),
            self._load_website_ids(owner),
        )
        return [_out(row, website_ids) for row in rows]

    async def load(self, owner: str) -> List[FolderOut]:
        """``list_folders`` plus the one-time Bookmarks root bootstrap."""
        folders = await self.list_folders(owner)
        if any(f.folder_kind == FolderKind.WEBSITE for f in folders):
            return folders

        logger.info("Bootstrapping %r website folder for %s", settings.BOOKMARKS_FOLDER_NAME, owner)
        await self.create_folder(owner, settings.BOOKMARKS_FOLDER_NAME, None, FolderKind.WEBSITE)
        return await self.list_folders(owner)

    async def get_folder(self, owner: str, folder_id: str) -> FolderOut:
        for folder in await self.list_folders(owner):
            if folder.id == folder_id:
                return folder
        raise NotFoundError(f"folder {folder_id} not found")

    # -- writes -----------------------------------------------------------

    def _find(self, owner: str, folder_id: str) -> Optional[Folder]:
        return self.db.query(Folder).filter(Folder.id == folder_id, Folder.user_id == owner).first()

    async def create_folder(
        self,
        owner: str,
        name: str,
        parent_id: Optional[str] = None,
        kind: FolderKind = FolderKind.PROMPT,
    ) -> FolderOut:
        name = (name or "").strip()
        if not name:
            raise ValidationError("folder name is required")

        try:
            if parent_id is not None and self._find(owner, parent_id) is None:
                raise ValidationError(f"parent folder {parent_id} does not exist")
            folder = Folder(user_id=owner, name=name, parent_id=parent_id)
            self.db.add(folder)
            self.db.commit()
            self.db.refresh(folder)
        except SQLAlchemyError as exc:
            raise self._fail("create folder", exc) from exc

        created = _out(folder, {folder.id} if kind == FolderKind.WEBSITE else set())
        logger.info("Created %s folder %s for %s", kind.value, created.id, owner)

        if kind == FolderKind.WEBSITE:
            try:
                await self.tag_website_folder(owner, created.id)
            except (StoreUnavailable, NotFoundError) as exc:
                logger.error("Folder %s created but kind was not recorded: %s", created.id, exc)
                raise PartialFailure(
                    "folder created but its kind could not be recorded",
                    result=created,
                    failed=[created.id],
                ) from exc

        return created

    async def rename_folder(self, owner: str, folder_id: str, name: str) -> FolderOut:
        name = (name or "").strip()
        if not name:
            raise ValidationError("folder name is required")
        # read the kind first so a failed read leaves the old name in place
        website_ids = await self._load_website_ids(owner)
        try:
            folder = self._find(owner, folder_id)
            if folder is None:
                raise NotFoundError(f"folder {folder_id} not found")
            folder.name = name
            self.db.commit()
            self.db.refresh(folder)
        except SQLAlchemyError as exc:
            raise self._fail("rename folder", exc) from exc

        return _out(folder, website_ids)

    async def delete_folder(self, owner: str, folder_id: str) -> List[str]:
        """
        Delete ``folder_id`` and every descendant folder.

        Items in the deleted folders become unfiled, they are never deleted.
        Returns the deleted folder ids.
        """
        rows = await self._select_folders(owner)
        if not any(row.id == folder_id for row in rows):
            raise NotFoundError(f"folder {folder_id} not found")

        flat = [_out(row, set()) for row in rows]
        doomed = [folder_id] + descendant_ids(folder_id, flat)

        # unfiling and the folder delete commit together
        moved = await self.items.clear_folder(owner, doomed, commit=False)
        try:
            (
                self.db.query(Folder)
                .filter(Folder.user_id == owner, Folder.id.in_(doomed))
                .delete(synchronize_session=False)
            )
            self.db.commit()
        except SQLAlchemyError as exc:
            raise self._fail("delete folder", exc) from exc

        if moved:
            await self.items.notify(UPDATE, owner)
        logger.info("Deleted folder %s and %d descendants for %s", folder_id, len(doomed) - 1, owner)

        try:
            website_ids = await self._load_website_ids(owner)
            if website_ids & set(doomed):
                await self._save_website_ids(owner, website_ids - set(doomed))
        except (StoreUnavailable, NotFoundError) as exc:
            logger.error("Folder %s deleted but kind bookkeeping was not cleaned: %s", folder_id, exc)
            raise PartialFailure(
                "folder deleted but its kind could not be cleared",
                result=doomed,
                failed=doomed,
            ) from exc

        return doomed
