import os
from concurrent.futures import ThreadPoolExecutor

os.environ.setdefault("DB_BACKEND", "sqlite")

import pytest

from core.services import categories, containers, images, items


@pytest.fixture
def hammer(server_db, alice):
    garage = containers.container_create(name="Garage", context=alice)["container"]
    tools = categories.category_create(name="Tools", context=alice)["category"]
    return items.item_create(
        name="Hammer",
        category_id=tools["id"],
        container_id=garage["id"],
        context=alice,
    )["item"]


def _attach(context, parent_id, path, kind="item"):
    return images.image_attach(parent_kind=kind, parent_id=parent_id, storage_path=path, context=context)


def _orders(context, parent_id, kind="item"):
    listed = images.image_list(parent_kind=kind, parent_id=parent_id, context=context)
    assert listed["status"] == "ok", listed
    return [(image["storage_path"], image["display_order"]) for image in listed["images"]]


def test_sixth_attach_conflicts(hammer, alice):
    for index in range(1, 6):
        result = _attach(alice, hammer["id"], f"u/{index}.jpg")
        assert result["status"] == "created"
        assert result["image"]["display_order"] == index

    sixth = _attach(alice, hammer["id"], "u/6.jpg")
    assert sixth["status"] == "error"
    assert sixth["error_type"] == "conflict"
    assert sixth["reason"] == "image_limit_exceeded"
    assert sixth["details"]["limit"] == 5

    assert _orders(alice, hammer["id"]) == [(f"u/{index}.jpg", index) for index in range(1, 6)]


def test_attach_requires_owned_parent(hammer, alice, bob):
    missing = _attach(alice, "no-such-item", "u/1.jpg")
    assert missing["error_type"] == "invalid_reference"
    assert missing["field"] == "parent_id"

    foreign = _attach(bob, hammer["id"], "u/1.jpg")
    assert foreign["error_type"] == "invalid_reference"

    wrong_kind = _attach(alice, hammer["id"], "u/1.jpg", kind="container")
    assert wrong_kind["error_type"] == "invalid_reference"

    bad_kind = _attach(alice, hammer["id"], "u/1.jpg", kind="category")
    assert bad_kind["error_type"] == "validation_error"
    assert bad_kind["field"] == "parent_kind"


def test_concurrent_attach_never_exceeds_limit(hammer, alice):
    paths = [f"u/concurrent-{index}.jpg" for index in range(10)]

    def attach(path):
        return _attach(alice, hammer["id"], path)

    with ThreadPoolExecutor(max_workers=10) as executor:
        results = list(executor.map(attach, paths))

    statuses = [result["status"] for result in results]
    assert statuses.count("created") == 5
    conflicts = [result for result in results if result["status"] == "error"]
    assert len(conflicts) == 5
    assert all(result["error_type"] == "conflict" for result in conflicts)

    orders = [order for _, order in _orders(alice, hammer["id"])]
    assert orders == [1, 2, 3, 4, 5]


def test_detach_compacts_remaining_slots(hammer, alice):
    created = [_attach(alice, hammer["id"], f"u/{index}.jpg")["image"] for index in range(1, 6)]

    detached = images.image_detach(
        parent_kind="item",
        parent_id=hammer["id"],
        image_id=created[2]["id"],
        context=alice,
    )
    assert detached["status"] == "deleted"
    assert detached["removed_storage_path"] == "u/3.jpg"
    assert _orders(alice, hammer["id"]) == [("u/1.jpg", 1), ("u/2.jpg", 2), ("u/4.jpg", 3), ("u/5.jpg", 4)]

    # Removing the thumbnail promotes the next image into slot 1
    images.image_detach(parent_kind="item", parent_id=hammer["id"], image_id=created[0]["id"], context=alice)
    assert _orders(alice, hammer["id"]) == [("u/2.jpg", 1), ("u/4.jpg", 2), ("u/5.jpg", 3)]

    # The freed slot is reused
    assert _attach(alice, hammer["id"], "u/6.jpg")["image"]["display_order"] == 4


def test_detach_unknown_image_is_not_found(hammer, alice, bob):
    image = _attach(alice, hammer["id"], "u/1.jpg")["image"]

    missing = images.image_detach(parent_kind="item", parent_id=hammer["id"], image_id="nope", context=alice)
    assert missing["error_type"] == "not_found"

    foreign = images.image_detach(parent_kind="item", parent_id=hammer["id"], image_id=image["id"], context=bob)
    assert foreign["error_type"] == "not_found"
    assert _orders(alice, hammer["id"]) == [("u/1.jpg", 1)]


def test_reorder_applies_full_permutation(hammer, alice):
    created = [_attach(alice, hammer["id"], f"u/{index}.jpg")["image"] for index in range(1, 4)]
    new_order = {created[0]["id"]: 3, created[1]["id"]: 1, created[2]["id"]: 2}

    result = images.image_reorder(parent_kind="item", parent_id=hammer["id"], order=new_order, context=alice)
    assert result["status"] == "updated"
    assert [image["storage_path"] for image in result["images"]] == ["u/2.jpg", "u/3.jpg", "u/1.jpg"]
    assert _orders(alice, hammer["id"]) == [("u/2.jpg", 1), ("u/3.jpg", 2), ("u/1.jpg", 3)]
    assert items.item_get(item_id=hammer["id"], context=alice)["item"]["thumbnail"] == "u/2.jpg"


def test_reorder_rejects_partial_or_foreign_sets(hammer, alice):
    created = [_attach(alice, hammer["id"], f"u/{index}.jpg")["image"] for index in range(1, 4)]
    ids = [image["id"] for image in created]

    missing_one = images.image_reorder(
        parent_kind="item",
        parent_id=hammer["id"],
        order={ids[0]: 1, ids[1]: 2},
        context=alice,
    )
    assert missing_one["error_type"] == "invalid_reference"

    extra = images.image_reorder(
        parent_kind="item",
        parent_id=hammer["id"],
        order={ids[0]: 1, ids[1]: 2, ids[2]: 3, "stranger": 4},
        context=alice,
    )
    assert extra["error_type"] == "invalid_reference"

    gap = images.image_reorder(
        parent_kind="item",
        parent_id=hammer["id"],
        order={ids[0]: 1, ids[1]: 2, ids[2]: 4},
        context=alice,
    )
    assert gap["error_type"] == "invalid_reference"
    assert gap["field"] == "order"
    assert gap["id"] == "4"
    assert gap["message"] == "display orders must be a permutation of 1..3"

    repeated = images.image_reorder(
        parent_kind="item",
        parent_id=hammer["id"],
        order={ids[0]: 1, ids[1]: 1, ids[2]: 2},
        context=alice,
    )
    assert repeated["error_type"] == "invalid_reference"
    assert repeated["field"] == "order"

    assert _orders(alice, hammer["id"]) == [("u/1.jpg", 1), ("u/2.jpg", 2), ("u/3.jpg", 3)]


def test_container_images_are_separate_from_item_images(hammer, alice):
    garage_id = hammer["container"]["id"]
    _attach(alice, hammer["id"], "u/item.jpg")
    assert _attach(alice, garage_id, "u/garage.jpg", kind="container")["image"]["display_order"] == 1

    assert _orders(alice, garage_id, kind="container") == [("u/garage.jpg", 1)]
    assert _orders(alice, hammer["id"]) == [("u/item.jpg", 1)]
