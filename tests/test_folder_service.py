import pytest
from unittest.mock import AsyncMock, MagicMock

from conftest import new_item
from sqlalchemy.exc import OperationalError

from prompt_manager.config import settings
from prompt_manager.exceptions import NotFoundError, PartialFailure, StoreUnavailable, ValidationError
from prompt_manager.schemas.folder import FolderKind


@pytest.mark.asyncio
async def test_create_and_list_folders(folders, owner):
    work = await folders.create_folder(owner, "Work")
    ai = await folders.create_folder(owner, "AI", work.id)

    listed = await folders.list_folders(owner)

    assert [f.name for f in listed] == ["AI", "Work"]
    assert {f.id: f.parent_id for f in listed} == {work.id: None, ai.id: work.id}
    assert all(f.folder_kind == FolderKind.PROMPT for f in listed)


@pytest.mark.asyncio
async def test_create_folder_rejects_empty_name(folders, owner):
    with pytest.raises(ValidationError):
        await folders.create_folder(owner, "   ")


@pytest.mark.asyncio
async def test_create_folder_rejects_unknown_or_foreign_parent(folders, owner, other_owner):
    foreign = await folders.create_folder(other_owner, "Theirs")

    with pytest.raises(ValidationError):
        await folders.create_folder(owner, "Child", "does-not-exist")
    with pytest.raises(ValidationError):
        await folders.create_folder(owner, "Child", foreign.id)


@pytest.mark.asyncio
async def test_website_kind_is_stored_in_identity_metadata(folders, identity, owner):
    site = await folders.create_folder(owner, "Links", kind=FolderKind.WEBSITE)

    assert site.folder_kind == FolderKind.WEBSITE
    user = await identity.get_user(owner)
    assert user.metadata["website_folder_ids"] == [site.id]

    listed = await folders.list_folders(owner)
    assert listed[0].folder_kind == FolderKind.WEBSITE


@pytest.mark.asyncio
async def test_failed_kind_write_reports_partial_failure(folders, identity, owner):
    real_update = identity.update_user
    identity.update_user = AsyncMock(side_effect=StoreUnavailable("identity down"))

    with pytest.raises(PartialFailure) as info:
        await folders.create_folder(owner, "Links", kind=FolderKind.WEBSITE)

    created = info.value.result
    assert info.value.failed == [created.id]
    listed = await folders.list_folders(owner)
    assert [f.id for f in listed] == [created.id]
    assert listed[0].folder_kind == FolderKind.PROMPT

    # retrying only the failed step
    identity.update_user = real_update
    await folders.tag_website_folder(owner, created.id)
    assert (await folders.get_folder(owner, created.id)).folder_kind == FolderKind.WEBSITE


@pytest.mark.asyncio
async def test_list_folders_is_all_or_nothing(folders, identity, owner):
    await folders.create_folder(owner, "Work")
    identity.get_user = AsyncMock(side_effect=StoreUnavailable("identity down"))

    with pytest.raises(StoreUnavailable):
        await folders.list_folders(owner)


@pytest.mark.asyncio
async def test_load_bootstraps_bookmarks_once(folders, owner):
    first = await folders.load(owner)
    second = await folders.load(owner)

    websites = [f for f in second if f.folder_kind == FolderKind.WEBSITE]
    assert len(websites) == 1
    assert websites[0].name == settings.BOOKMARKS_FOLDER_NAME
    assert websites[0].parent_id is None
    assert [f.id for f in first] == [f.id for f in second]


@pytest.mark.asyncio
async def test_load_skips_bootstrap_when_website_folder_exists(folders, owner):
    await folders.create_folder(owner, "My links", kind=FolderKind.WEBSITE)

    loaded = await folders.load(owner)

    assert [f.name for f in loaded] == ["My links"]


@pytest.mark.asyncio
async def test_rename_folder(folders, owner):
    work = await folders.create_folder(owner, "Work")

    renamed = await folders.rename_folder(owner, work.id, "  Office ")

    assert renamed.name == "Office"
    with pytest.raises(ValidationError):
        await folders.rename_folder(owner, work.id, "")
    with pytest.raises(NotFoundError):
        await folders.rename_folder(owner, "missing", "x")


@pytest.mark.asyncio
async def test_delete_cascades_and_unfiles_items(folders, items, owner):
    a = await folders.create_folder(owner, "A")
    b = await folders.create_folder(owner, "B", a.id)
    keep = await folders.create_folder(owner, "Keep")
    x = await items.create(owner, new_item("X", folder_id=b.id))
    y = await items.create(owner, new_item("Y", folder_id=keep.id))

    deleted = await folders.delete_folder(owner, a.id)

    assert set(deleted) == {a.id, b.id}
    assert [f.id for f in await folders.list_folders(owner)] == [keep.id]
    assert (await items.get(owner, x.id)).folder_id is None
    assert (await items.get(owner, y.id)).folder_id == keep.id
    assert x.id in [i.id for i in await items.list(owner)]


@pytest.mark.asyncio
async def test_delete_removes_website_kind(folders, identity, owner):
    site = await folders.create_folder(owner, "Links", kind=FolderKind.WEBSITE)
    other = await folders.create_folder(owner, "More links", kind=FolderKind.WEBSITE)

    await folders.delete_folder(owner, site.id)

    user = await identity.get_user(owner)
    assert user.metadata["website_folder_ids"] == [other.id]


@pytest.mark.asyncio
async def test_delete_unknown_folder(folders, owner, other_owner):
    theirs = await folders.create_folder(other_owner, "Theirs")

    with pytest.raises(NotFoundError):
        await folders.delete_folder(owner, theirs.id)


@pytest.mark.asyncio
async def test_rename_keeps_old_name_when_kind_read_fails(folders, identity, owner):
    work = await folders.create_folder(owner, "Work")
    real_get = identity.get_user
    identity.get_user = AsyncMock(side_effect=StoreUnavailable("identity down"))

    with pytest.raises(StoreUnavailable):
        await folders.rename_folder(owner, work.id, "Office")

    identity.get_user = real_get
    assert (await folders.get_folder(owner, work.id)).name == "Work"


@pytest.mark.asyncio
async def test_failed_delete_leaves_items_filed(folders, items, feed, db, owner, monkeypatch):
    a = await folders.create_folder(owner, "A")
    b = await folders.create_folder(owner, "B", a.id)
    x = await items.create(owner, new_item("X", folder_id=b.id))
    events = []
    feed.subscribe("prompts", events.append)
    monkeypatch.setattr(db, "commit", MagicMock(side_effect=OperationalError("DELETE", {}, Exception("locked"))))

    with pytest.raises(StoreUnavailable):
        await folders.delete_folder(owner, a.id)

    assert (await items.get(owner, x.id)).folder_id == b.id
    assert {f.id for f in await folders.list_folders(owner)} == {a.id, b.id}
    assert events == []


@pytest.mark.asyncio
async def test_delete_publishes_once_after_commit(folders, items, feed, owner):
    a = await folders.create_folder(owner, "A")
    await items.create(owner, new_item("X", folder_id=a.id))
    events = []
    feed.subscribe("prompts", events.append)

    await folders.delete_folder(owner, a.id)

    assert [(e.event, e.owner) for e in events] == [("UPDATE", owner)]
