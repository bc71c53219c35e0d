import os

os.environ.setdefault("DB_BACKEND", "sqlite")

import pytest

from core.services import categories, containers, images, items


@pytest.fixture
def shelves(server_db, alice):
    garage = containers.container_create(name="Garage", context=alice)["container"]
    attic = containers.container_create(name="Attic", context=alice)["container"]
    tools = categories.category_create(name="Tools", context=alice)["category"]
    toys = categories.category_create(name="Toys", context=alice)["category"]
    return {"garage": garage, "attic": attic, "tools": tools, "toys": toys}


def _create(context, shelves, name, container="garage", category="tools", **fields):
    result = items.item_create(
        name=name,
        category_id=shelves[category]["id"],
        container_id=shelves[container]["id"],
        context=context,
        **fields,
    )
    assert result["status"] == "created", result
    return result["item"]


def test_create_defaults_to_in_storage(shelves, alice):
    item = _create(alice, shelves, "  Hammer ", description="claw", quantity=2)
    assert item["name"] == "Hammer"
    assert item["is_in"] is True
    assert item["quantity"] == 2
    assert item["category"] == {"id": shelves["tools"]["id"], "name": "Tools"}
    assert item["container"] == {"id": shelves["garage"]["id"], "name": "Garage"}
    assert item["thumbnail"] is None

    checked_out = _create(alice, shelves, "Drill", is_in=False)
    assert checked_out["is_in"] is False


def test_create_requires_owned_references(shelves, alice, bob):
    missing = items.item_create(
        name="Hammer",
        category_id="does-not-exist",
        container_id=shelves["garage"]["id"],
        context=alice,
    )
    assert missing["error_type"] == "invalid_reference"
    assert missing["field"] == "category_id"

    bob_box = containers.container_create(name="Box", context=bob)["container"]
    foreign = items.item_create(
        name="Hammer",
        category_id=shelves["tools"]["id"],
        container_id=bob_box["id"],
        context=alice,
    )
    assert foreign["error_type"] == "invalid_reference"
    assert foreign["field"] == "container_id"
    assert items.item_list(context=alice)["pagination"]["total"] == 0


def test_create_validates_fields(shelves, alice):
    too_long = items.item_create(
        name="x" * 256,
        category_id=shelves["tools"]["id"],
        container_id=shelves["garage"]["id"],
        context=alice,
    )
    assert too_long["error_type"] == "validation_error"
    assert too_long["field"] == "name"

    bad_quantity = items.item_create(
        name="Nails",
        category_id=shelves["tools"]["id"],
        container_id=shelves["garage"]["id"],
        quantity=0,
        context=alice,
    )
    assert bad_quantity["error_type"] == "validation_error"
    assert bad_quantity["field"] == "quantity"


def test_list_filters_are_anded(shelves, alice):
    _create(alice, shelves, "Hammer")
    _create(alice, shelves, "Sledgehammer", container="attic", is_in=False)
    _create(alice, shelves, "Toy hammer", category="toys", is_in=False)
    _create(alice, shelves, "Kite", container="attic", category="toys")

    def names(**filters):
        result = items.item_list(sort="name", order="asc", context=alice, **filters)
        assert result["status"] == "ok", result
        return [row["name"] for row in result["items"]]

    assert names() == ["Hammer", "Kite", "Sledgehammer", "Toy hammer"]
    assert names(name="HAMMER") == ["Hammer", "Sledgehammer", "Toy hammer"]
    assert names(name="hammer", is_in=False) == ["Sledgehammer", "Toy hammer"]
    assert names(name="hammer", is_in=False, category_id=shelves["toys"]["id"]) == ["Toy hammer"]
    assert names(container_id=shelves["attic"]["id"]) == ["Kite", "Sledgehammer"]
    assert names(container_id=shelves["attic"]["id"], category_id=shelves["tools"]["id"]) == ["Sledgehammer"]


def test_list_sorting_and_pagination(shelves, alice):
    for name in ("b", "c", "a"):
        _create(alice, shelves, name)

    newest_first = items.item_list(context=alice)
    assert [row["name"] for row in newest_first["items"]] == ["a", "c", "b"]

    oldest_first = items.item_list(sort="created_at", order="asc", limit=2, context=alice)
    assert [row["name"] for row in oldest_first["items"]] == ["b", "c"]
    assert oldest_first["pagination"] == {"page": 1, "limit": 2, "total": 3, "total_pages": 2}

    invalid = items.item_list(sort="quantity", context=alice)
    assert invalid["error_type"] == "validation_error"


def test_toggle_in_and_out(shelves, alice):
    item = _create(alice, shelves, "Hammer")

    out = items.item_update(item_id=item["id"], changes={"is_in": False}, context=alice)
    assert out["status"] == "updated"
    assert out["item"]["is_in"] is False
    assert out["item"]["name"] == "Hammer"

    back = items.item_update(item_id=item["id"], changes={"is_in": True}, context=alice)
    assert back["item"]["is_in"] is True


def test_move_revalidates_references(shelves, alice, bob):
    item = _create(alice, shelves, "Hammer")

    moved = items.item_update(
        item_id=item["id"],
        changes={"container_id": shelves["attic"]["id"], "category_id": shelves["toys"]["id"]},
        context=alice,
    )
    assert moved["item"]["container"] == {"id": shelves["attic"]["id"], "name": "Attic"}
    assert moved["item"]["category"] == {"id": shelves["toys"]["id"], "name": "Toys"}

    bob_tag = categories.category_create(name="Bob only", context=bob)["category"]
    rejected = items.item_update(item_id=item["id"], changes={"category_id": bob_tag["id"]}, context=alice)
    assert rejected["error_type"] == "invalid_reference"

    fetched = items.item_get(item_id=item["id"], context=alice)["item"]
    assert fetched["category"]["id"] == shelves["toys"]["id"]


def test_update_rejects_unknown_and_invalid_fields(shelves, alice):
    item = _create(alice, shelves, "Hammer")

    assert items.item_update(item_id=item["id"], changes={"owner_id": "bob"}, context=alice)["error_type"] == "validation_error"
    assert items.item_update(item_id=item["id"], changes={"is_in": "no"}, context=alice)["error_type"] == "validation_error"
    assert items.item_update(item_id=item["id"], changes={"quantity": -3}, context=alice)["error_type"] == "validation_error"

    cleared = items.item_update(item_id=item["id"], changes={"quantity": None, "description": " "}, context=alice)
    assert cleared["item"]["quantity"] is None
    assert cleared["item"]["description"] is None


def test_detail_and_list_carry_thumbnail(shelves, alice):
    item = _create(alice, shelves, "Hammer")
    images.image_attach(parent_kind="item", parent_id=item["id"], storage_path="u/hammer-1.jpg", context=alice)
    images.image_attach(parent_kind="item", parent_id=item["id"], storage_path="u/hammer-2.jpg", context=alice)

    detail = items.item_get(item_id=item["id"], context=alice)["item"]
    assert detail["thumbnail"] == "u/hammer-1.jpg"
    assert [image["display_order"] for image in detail["images"]] == [1, 2]

    row = items.item_list(context=alice)["items"][0]
    assert row["thumbnail"] == "u/hammer-1.jpg"


def test_delete_cascades_image_rows(shelves, alice):
    item = _create(alice, shelves, "Hammer")
    images.image_attach(parent_kind="item", parent_id=item["id"], storage_path="u/a.jpg", context=alice)
    images.image_attach(parent_kind="item", parent_id=item["id"], storage_path="u/b.jpg", context=alice)

    deleted = items.item_delete(item_id=item["id"], context=alice)
    assert deleted["status"] == "deleted"
    assert deleted["removed_storage_paths"] == ["u/a.jpg", "u/b.jpg"]

    assert items.item_get(item_id=item["id"], context=alice)["error_type"] == "not_found"
    assert items.item_delete(item_id=item["id"], context=alice)["error_type"] == "not_found"
    assert images.image_list(parent_kind="item", parent_id=item["id"], context=alice)["error_type"] == "not_found"
