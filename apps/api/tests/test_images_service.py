"""Primary-image bookkeeping for pending and stored images."""
from __future__ import annotations

import pytest

from inmoportal.core.errors import NotFoundError, PermissionDeniedError
from inmoportal.schemas.properties import PendingImage, PersistedImage
from inmoportal.services import images


def _stored(image_id: str, *, primary: bool = False) -> PersistedImage:
    return PersistedImage(id=image_id, url=f"http://img/{image_id}.jpg", is_primary=primary)


def test_first_upload_into_empty_list_becomes_primary() -> None:
    slots = images.add_uploaded([], ["http://img/1.jpg", "http://img/2.jpg"])

    assert [slot.is_primary for slot in slots] == [True, False]
    assert all(isinstance(slot, PendingImage) for slot in slots)


def test_uploads_into_existing_list_keep_current_primary() -> None:
    slots = images.add_uploaded([_stored("a", primary=True)], ["http://img/new.jpg"])

    assert [slot.is_primary for slot in slots] == [True, False]


def test_set_primary_moves_the_flag() -> None:
    slots = images.set_primary([_stored("a", primary=True), _stored("b")], "b")

    assert [slot.is_primary for slot in slots] == [False, True]


def test_set_primary_on_unknown_image_raises() -> None:
    with pytest.raises(NotFoundError):
        images.set_primary([_stored("a")], "zzz")


def test_removing_primary_promotes_first_remaining() -> None:
    remaining, removed = images.remove_slot([_stored("a"), _stored("b", primary=True), _stored("c")], "b")

    assert removed is not None and removed.id == "b"
    assert [(slot.id, slot.is_primary) for slot in remaining] == [("a", True), ("c", False)]


def test_removing_last_image_leaves_empty_list() -> None:
    remaining, removed = images.remove_slot([_stored("a", primary=True)], "a")

    assert remaining == []
    assert removed is not None


def test_normalise_keeps_only_first_primary() -> None:
    slots = images.normalise_primary([_stored("a", primary=True), _stored("b", primary=True)])

    assert [slot.is_primary for slot in slots] == [True, False]


@pytest.mark.asyncio
async def test_persist_images_inserts_pending_and_moves_primary(seeded, session) -> None:
    slots = [
        _stored("img-1a"),
        _stored("img-1b"),
        PendingImage(temp_id="tmp-1", url="http://img/new.jpg", is_primary=True),
    ]

    stored = await images.persist_images(session, property_id="P1", user_id="owner-1", slots=slots)
    await session.commit()

    assert len(stored) == 3
    primaries = [image for image in stored if image.is_primary]
    assert [image.url for image in primaries] == ["http://img/new.jpg"]


@pytest.mark.asyncio
async def test_remove_primary_image_reassigns_and_deletes_file(seeded, session, storage) -> None:
    await storage.upload("property_images/b.jpg", b"jpeg-bytes")

    remaining = await images.remove_image(
        session, storage, property_id="P1", image_id="img-1b", user_id="owner-1"
    )

    assert [(image.id, image.is_primary) for image in remaining] == [("img-1a", True)]
    assert not (storage.bucket_dir / "property_images" / "b.jpg").exists()


@pytest.mark.asyncio
async def test_remove_image_of_another_owner_is_denied(seeded, session, storage) -> None:
    with pytest.raises(PermissionDeniedError):
        await images.remove_image(session, storage, property_id="P1", image_id="img-1a", user_id="intruder")


@pytest.mark.asyncio
async def test_make_primary_rejects_image_from_other_property(seeded, session) -> None:
    with pytest.raises(NotFoundError):
        await images.make_primary(session, property_id="P1", image_id="img-3a", user_id="owner-1")
