import os

os.environ.setdefault("DB_BACKEND", "sqlite")


def test_core_imports():
    import core.context  # noqa: F401
    import core.models  # noqa: F401
    import core.services.containers  # noqa: F401
    import core.services.categories  # noqa: F401
    import core.services.items  # noqa: F401
    import core.services.images  # noqa: F401
    import core.services.dashboard  # noqa: F401
    import core.services.blob_storage  # noqa: F401


def test_core_smoke_lifecycle(server_db, alice):
    from core.services import categories, containers, dashboard, items

    garage = containers.container_create(name="Garage", context=alice)
    assert garage["status"] == "created"
    tools = categories.category_create(name="Tools", context=alice)
    assert tools["status"] == "created"

    hammer = items.item_create(
        name="Hammer",
        category_id=tools["category"]["id"],
        container_id=garage["container"]["id"],
        context=alice,
    )
    assert hammer["status"] == "created"
    assert hammer["item"]["is_in"] is True

    stats = dashboard.get_statistics(context=alice)
    assert stats["status"] == "ok"
    assert stats["statistics"]["total_items"] == 1

    deleted = items.item_delete(item_id=hammer["item"]["id"], context=alice)
    assert deleted["status"] == "deleted"
    assert deleted["removed_storage_paths"] == []

    assert containers.container_delete(container_id=garage["container"]["id"], context=alice)["status"] == "deleted"
    assert categories.category_delete(category_id=tools["category"]["id"], context=alice)["status"] == "deleted"


def test_operations_require_tenant(server_db):
    from core.services import containers

    result = containers.container_list()
    assert result["status"] == "error"
    assert result["error_type"] == "validation_error"
    assert result["field"] == "tenant_id"


def test_validation_issue_carries_only_field_and_issue():
    import pytest

    from core.errors import ValidationIssue

    issue = ValidationIssue("name is required", field="name", error_type="required")
    assert issue.payload() == {"field": "name", "issue": "required"}
    assert not hasattr(issue, "error_code")
    with pytest.raises(TypeError):
        ValidationIssue("bad", field="name", error_code="E1")
