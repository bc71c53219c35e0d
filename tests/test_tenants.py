import os
from concurrent.futures import ThreadPoolExecutor

os.environ.setdefault("DB_BACKEND", "sqlite")

from core.models import Category, Container, Image, Item, Profile
from core.services import categories, containers, images, items, tenants


def test_profile_created_lazily(server_db, alice, db_session):
    assert db_session.get(Profile, "tenant-alice") is None

    result = tenants.tenant_get_profile(context=alice)
    assert result["status"] == "ok"
    assert result["profile"]["id"] == "tenant-alice"

    again = tenants.tenant_get_profile(context=alice)
    assert again["profile"]["created_at"] == result["profile"]["created_at"]
    assert db_session.query(Profile).count() == 1


def test_concurrent_first_access_creates_one_profile(server_db, db_session):
    with ThreadPoolExecutor(max_workers=4) as executor:
        list(executor.map(tenants.ensure_profile, ["tenant-carol"] * 4))

    assert db_session.query(Profile).filter(Profile.id == "tenant-carol").count() == 1


def test_delete_account_removes_everything_owned(server_db, alice, bob, db_session):
    garage = containers.container_create(name="Garage", context=alice)["container"]
    tools = categories.category_create(name="Tools", context=alice)["category"]
    hammer = items.item_create(name="Hammer", category_id=tools["id"], container_id=garage["id"], context=alice)["item"]
    images.image_attach(parent_kind="item", parent_id=hammer["id"], storage_path="alice/h.jpg", context=alice)
    images.image_attach(parent_kind="container", parent_id=garage["id"], storage_path="alice/g.jpg", context=alice)
    containers.container_create(name="Bob's shed", context=bob)

    result = tenants.tenant_delete_account(context=alice)
    assert result["status"] == "deleted"
    assert result["deleted"] == {"images": 2, "items": 1, "categories": 1, "containers": 1}
    assert sorted(result["removed_storage_paths"]) == ["alice/g.jpg", "alice/h.jpg"]

    for model in (Image, Item, Category, Container):
        assert db_session.query(model).filter(model.owner_id == "tenant-alice").count() == 0
    assert db_session.get(Profile, "tenant-alice") is None
    assert containers.container_list(context=bob)["pagination"]["total"] == 1

    assert tenants.tenant_delete_account(context=alice)["error_type"] == "not_found"
