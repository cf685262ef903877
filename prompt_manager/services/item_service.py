"""
Item repository: CRUD for prompts and bookmarks, folder-scoped listing,
share-token lifecycle and manual ordering.
"""
import asyncio
import logging
import secrets
from typing import Collection, Iterable, List, Mapping, Optional, Sequence, Tuple

from sqlalchemy import or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from prompt_manager.exceptions import NotFoundError, PartialFailure, StoreUnavailable, ValidationError
from prompt_manager.models.folder import Folder
from prompt_manager.models.item import Item, ItemTag
from prompt_manager.schemas.item import ItemCreate, ItemOut
from prompt_manager.services.change_feed import DELETE, INSERT, UPDATE, ChangeEvent, ChangeFeed
from prompt_manager.utils.text import like_pattern, normalize_tags

logger = logging.getLogger(__name__)

TABLE = Item.__tablename__

UPDATABLE_FIELDS = {"title", "content", "folder_id", "tags", "image_url", "link_url", "sort_order"}
# sharing only changes through set_share so the token stays coupled to is_public
SHARE_FIELDS = {"is_public", "share_token"}
NOT_NULL_FIELDS = {"content", "sort_order"}


def new_share_token() -> str:
    return secrets.token_urlsafe(32)


class ItemRepository:
    def __init__(self, db: Session, feed: Optional[ChangeFeed] = None):
        self.db = db
        self.feed = feed

    def _owned(self, owner: str):
        return self.db.query(Item).filter(Item.user_id == owner)

    def _fail(self, operation: str, exc: Exception) -> StoreUnavailable:
        self.db.rollback()
        logger.error("%s failed: %s", operation, exc)
        return StoreUnavailable(f"{operation} failed")

    async def notify(self, event: str, owner: str, record_id: Optional[str] = None):
        if self.feed is not None:
            await self.feed.publish(ChangeEvent(table=TABLE, event=event, owner=owner, record_id=record_id))

    def _load(self, owner: str, item_id: str) -> Item:
        item = self._owned(owner).filter(Item.id == item_id).first()
        if item is None:
            raise NotFoundError(f"item {item_id} not found")
        return item

    def _check_folder(self, owner: str, folder_id: Optional[str]):
        if folder_id is None:
            return
        exists = self.db.query(Folder.id).filter(Folder.id == folder_id, Folder.user_id == owner).first()
        if exists is None:
            raise ValidationError(f"folder {folder_id} does not exist")

    async def list(self, owner: str, folder_ids: Optional[Collection[str]] = None) -> List[ItemOut]:
        """
        Items ordered by (sort_order asc, created_at desc).

        ``folder_ids=None`` is unscoped; an empty collection means "no matching
        scope" and returns [] without touching the store.
        """
        if folder_ids is not None and len(folder_ids) == 0:
            return []
        try:
            query = self._owned(owner)
            if folder_ids is not None:
                query = query.filter(Item.folder_id.in_(list(folder_ids)))
            rows = query.order_by(Item.sort_order.asc(), Item.created_at.desc()).all()
            return [ItemOut.model_validate(row) for row in rows]
        except SQLAlchemyError as exc:
            raise self._fail("list items", exc) from exc

    async def get(self, owner: str, item_id: str) -> ItemOut:
        try:
            return ItemOut.model_validate(self._load(owner, item_id))
        except SQLAlchemyError as exc:
            raise self._fail("get item", exc) from exc

    async def get_many(self, owner: str, item_ids: Sequence[str]) -> List[ItemOut]:
        """Items in the order of ``item_ids``."""
        try:
            rows = {row.id: row for row in self._owned(owner).filter(Item.id.in_(list(item_ids))).all()}
        except SQLAlchemyError as exc:
            raise self._fail("get items", exc) from exc
        missing = [i for i in item_ids if i not in rows]
        if missing:
            raise NotFoundError(f"items not found: {', '.join(missing)}")
        return [ItemOut.model_validate(rows[i]) for i in item_ids]

    async def create(self, owner: str, values: ItemCreate) -> ItemOut:
        title = (values.title or "").strip()
        if not title:
            raise ValidationError("title is required")
        try:
            self._check_folder(owner, values.folder_id)
            item = Item(
                user_id=owner,
                folder_id=values.folder_id,
                title=title,
                content=values.content or "",
                image_url=values.image_url,
                link_url=values.link_url,
                sort_order=values.sort_order,
                is_public=False,
                share_token=None,
            )
            item.tags = normalize_tags(values.tags)
            self.db.add(item)
            self.db.commit()
            self.db.refresh(item)
            created = ItemOut.model_validate(item)
        except SQLAlchemyError as exc:
            raise self._fail("create item", exc) from exc

        logger.info("Created item %s for %s", created.id, owner)
        await self.notify(INSERT, owner, created.id)
        return created

    async def update(self, owner: str, item_id: str, changes: Mapping) -> ItemOut:
        changes = dict(changes)
        rejected = set(changes) - UPDATABLE_FIELDS
        if rejected & SHARE_FIELDS:
            raise ValidationError("sharing is changed with set_share")
        if rejected:
            raise ValidationError(f"fields cannot be updated: {', '.join(sorted(rejected))}")
        if "title" in changes:
            changes["title"] = (changes["title"] or "").strip()
            if not changes["title"]:
                raise ValidationError("title is required")
        for key in NOT_NULL_FIELDS & set(changes):
            if changes[key] is None:
                raise ValidationError(f"{key} cannot be null")

        try:
            item = self._load(owner, item_id)
            if "folder_id" in changes:
                self._check_folder(owner, changes["folder_id"])
            for key, value in changes.items():
                if key == "tags":
                    item.tags = normalize_tags(value or [])
                else:
                    setattr(item, key, value)
            self.db.commit()
            self.db.refresh(item)
            updated = ItemOut.model_validate(item)
        except SQLAlchemyError as exc:
            raise self._fail("update item", exc) from exc

        await self.notify(UPDATE, owner, item_id)
        return updated

    async def delete(self, owner: str, item_id: str):
        try:
            item = self._load(owner, item_id)
            self.db.delete(item)
            self.db.commit()
        except SQLAlchemyError as exc:
            raise self._fail("delete item", exc) from exc

        logger.info("Deleted item %s for %s", item_id, owner)
        await self.notify(DELETE, owner, item_id)

    async def set_share(self, owner: str, item_id: str, enable: bool) -> Optional[str]:
        """
        Turn public sharing on or off.

        Enabling always issues a fresh token, so links handed out earlier stop
        working. Both columns change in a single UPDATE.
        """
        token = new_share_token() if enable else None
        try:
            updated = (
                self._owned(owner)
                .filter(Item.id == item_id)
                .update({Item.is_public: enable, Item.share_token: token}, synchronize_session="fetch")
            )
            if updated == 0:
                self.db.rollback()
                raise NotFoundError(f"item {item_id} not found")
            self.db.commit()
        except SQLAlchemyError as exc:
            raise self._fail("set share", exc) from exc

        logger.info("Sharing %s for item %s", "enabled" if enable else "disabled", item_id)
        await self.notify(UPDATE, owner, item_id)
        return token

    async def _write_position(self, owner: str, item_id: str, position: int) -> bool:
        try:
            updated = (
                self._owned(owner)
                .filter(Item.id == item_id)
                .update({Item.sort_order: position}, synchronize_session=False)
            )
            self.db.commit()
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.warning("Could not persist position %s for item %s: %s", position, item_id, exc)
            return False
        return updated == 1

    async def reorder(self, owner: str, ordered: Sequence[ItemOut]) -> List[ItemOut]:
        """
        Persist ``sort_order`` = position for each item.

        Every write is independent; a failed one does not roll back the others.
        Raises ``PartialFailure`` (with the reordered list as result) when only
        some writes landed.
        """
        ids = [item.id for item in ordered]
        if len(set(ids)) != len(ids):
            raise ValidationError("reorder ids must be unique")
        reordered =[item.model_copy(update={"sort_order": i}) for i, item in enumerate(ordered)]
        outcomes = await asyncio.gather(
            *(self._write_position(owner, item.id, i) for i, item in enumerate(ordered))
        )
        failed = [item.id for item, ok in zip(ordered, outcomes) if not ok]

        if len(failed) < len(ordered):
            await self.notify(UPDATE, owner)
        if failed and len(failed) == len(ordered):
            raise StoreUnavailable("reorder failed")
        if failed:
            raise PartialFailure("reorder partially persisted", result=reordered, failed=failed)
        return reordered

    async def clear_folder(self, owner: str, folder_ids: Iterable[str], commit: bool = True) -> int:
        """
        Move every item in ``folder_ids`` to unfiled. Returns the number moved.

        With ``commit=False`` the update joins the caller's transaction and
        nothing is published; the caller commits and calls ``notify``.
        """
        folder_ids = list(folder_ids)
        if not folder_ids:
            return 0
        try:
            moved = (
                self._owned(owner)
                .filter(Item.folder_id.in_(folder_ids))
                .update({Item.folder_id: None}, synchronize_session=False)
            )
            if commit:
                self.db.commit()
        except SQLAlchemyError as exc:
            raise self._fail("clear folder", exc) from exc

        if moved and commit:
            await self.notify(UPDATE, owner)
        return moved

    async def folder_refs(self, owner: str) -> List[Optional[str]]:
        """The ``folder_id`` of every item the owner has."""
        try:
            return [row.folder_id for row in self.db.query(Item.folder_id).filter(Item.user_id == owner).all()]
        except SQLAlchemyError as exc:
            raise self._fail("folder refs", exc) from exc

    async def recent(self, owner: str, limit: int) -> List[ItemOut]:
        try:
            rows = self._owned(owner).order_by(Item.created_at.desc()).limit(limit).all()
            return [ItemOut.model_validate(row) for row in rows]
        except SQLAlchemyError as exc:
            raise self._fail("recent items", exc) from exc

    async def search_text(self, owner: str, term: str, limit: int) -> List[ItemOut]:
        """Case-insensitive substring match on title or content, newest first."""
        pattern = like_pattern(term)
        try:
            rows = (
                self._owned(owner)
                .filter(or_(Item.title.ilike(pattern, escape="\\"), Item.content.ilike(pattern, escape="\\")))
                .order_by(Item.created_at.desc())
                .limit(limit)
                .all()
            )
            return [ItemOut.model_validate(row) for row in rows]
        except SQLAlchemyError as exc:
            raise self._fail("text search", exc) from exc

    async def find_by_tag(self, owner: str, tag: str, limit: int) -> List[ItemOut]:
        """Items carrying exactly ``tag`` (case-sensitive)."""
        try:
            rows = (
                self._owned(owner)
                .filter(Item.tag_rows.any(ItemTag.tag == tag))
                .order_by(Item.created_at.desc())
                .limit(limit)
                .all()
            )
            return [ItemOut.model_validate(row) for row in rows]
        except SQLAlchemyError as exc:
            raise self._fail("tag search", exc) from exc

    async def get_shared(self, token: str) -> Optional[ItemOut]:
        """
        Resolve a public share token. Wrong tokens and unshared items both
        return None.
        """
        if not token:
            return None
        try:
            row = self.db.query(Item).filter(Item.share_token == token, Item.is_public.is_(True)).first()
        except SQLAlchemyError as exc:
            raise self._fail("share lookup", exc) from exc
        return ItemOut.model_validate(row) if row is not None else None


class ScopedItemList:
    """
    The item list for one scope, held for a single consumer.

    Reordering updates the held list first and then persists it; the local
    order stays authoritative until the next ``refresh``.
    """

    def __init__(self, repository: ItemRepository, owner: str, folder_ids: Optional[Collection[str]] = None):
        self.repository = repository
        self.owner = owner
        self.folder_ids = None if folder_ids is None else frozenset(folder_ids)
        self._items: Tuple[ItemOut, ...] = ()

    @property
    def items(self) -> Tuple[ItemOut, ...]:
        return self._items

    async def refresh(self) -> Tuple[ItemOut, ...]:
        self._items = tuple(await self.repository.list(self.owner, self.folder_ids))
        return self._items

    async def reorder(self, ordered: Sequence[ItemOut]) -> Tuple[ItemOut, ...]:
        self._items = tuple(item.model_copy(update={"sort_order": i}) for i, item in enumerate(ordered))
        await self.repository.reorder(self.owner, ordered)
        return self._items
