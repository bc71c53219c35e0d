import os

os.environ.setdefault("DB_BACKEND", "sqlite")

import pytest

import core.config as config
from core.services import categories, containers, dashboard, images, items


def _stats(context):
    result = dashboard.get_statistics(context=context)
    assert result["status"] == "ok", result
    return result["statistics"]


@pytest.mark.parametrize("parallel", [True, False])
def test_inventory_walkthrough(server_db, alice, bob, monkeypatch, parallel):
    monkeypatch.setattr(config, "STATS_PARALLEL_QUERIES", parallel)

    garage = containers.container_create(name="Garage", context=alice)["container"]
    tools = categories.category_create(name="Tools", context=alice)["category"]
    hammer = items.item_create(
        name="Hammer",
        category_id=tools["id"],
        container_id=garage["id"],
        is_in=True,
        context=alice,
    )["item"]

    stats = _stats(alice)
    assert stats["total_items"] == 1
    assert stats["total_containers"] == 1
    assert stats["total_categories"] == 1
    assert stats["items_checked_out"] == 0
    assert [row["name"] for row in stats["recent_items"]] == ["Hammer"]

    blocked = categories.category_delete(category_id=tools["id"], context=alice)
    assert blocked["error_type"] == "conflict"
    assert blocked["details"]["dependent_count"] == 1
    assert blocked["details"]["name"] == "Tools"

    for duplicate in ("Tools", "tools", "TOOLS"):
        assert categories.category_create(name=duplicate, context=alice)["error_type"] == "conflict"

    for index in range(1, 6):
        assert images.image_attach(
            parent_kind="item",
            parent_id=hammer["id"],
            storage_path=f"u/hammer-{index}.jpg",
            context=alice,
        )["status"] == "created"
    assert images.image_attach(
        parent_kind="item",
        parent_id=hammer["id"],
        storage_path="u/hammer-6.jpg",
        context=alice,
    )["error_type"] == "conflict"
    listed = images.image_list(parent_kind="item", parent_id=hammer["id"], context=alice)["images"]
    assert [image["display_order"] for image in listed] == [1, 2, 3, 4, 5]

    items.item_update(item_id=hammer["id"], changes={"is_in": False}, context=alice)
    stats = _stats(alice)
    assert stats["items_checked_out"] == 1
    assert stats["recent_items"][0]["is_in"] is False
    assert stats["recent_items"][0]["thumbnail"] == "u/hammer-1.jpg"

    assert items.item_get(item_id=hammer["id"], context=bob)["error_type"] == "not_found"
    assert _stats(bob) == {
        "total_items": 0,
        "total_containers": 0,
        "total_categories": 0,
        "items_checked_out": 0,
        "recent_items": [],
    }


def test_recent_items_are_bounded_and_annotated(server_db, alice):
    garage = containers.container_create(name="Garage", context=alice)["container"]
    attic = containers.container_create(name="Attic", context=alice)["container"]
    tools = categories.category_create(name="Tools", context=alice)["category"]

    names = [f"Item {index}" for index in range(7)]
    for index, name in enumerate(names):
        items.item_create(
            name=name,
            category_id=tools["id"],
            container_id=(garage if index % 2 else attic)["id"],
            context=alice,
        )

    recent = _stats(alice)["recent_items"]
    assert len(recent) == config.RECENT_ITEMS_LIMIT
    assert [row["name"] for row in recent] == list(reversed(names))[:5]
    assert recent[0]["category_name"] == "Tools"
    assert recent[0]["container_name"] == "Attic"
    assert recent[1]["container_name"] == "Garage"
    assert all(row["thumbnail"] is None for row in recent)


def test_counts_match_listings(server_db, alice):
    garage = containers.container_create(name="Garage", context=alice)["container"]
    for name in ("Tools", "Paint", "Garden"):
        categories.category_create(name=name, context=alice)
    category_ids = [c["id"] for c in categories.category_list(context=alice)["categories"]]
    for index in range(4):
        items.item_create(
            name=f"Thing {index}",
            category_id=category_ids[index % 3],
            container_id=garage["id"],
            is_in=index % 2 == 0,
            context=alice,
        )

    stats = _stats(alice)
    assert stats["total_items"] == items.item_list(context=alice)["pagination"]["total"]
    assert stats["total_containers"] == containers.container_list(context=alice)["pagination"]["total"]
    assert stats["total_categories"] == len(categories.category_list(context=alice)["categories"])
    assert stats["items_checked_out"] == items.item_list(is_in=False, context=alice)["pagination"]["total"] == 2
