"""
Shared validation helpers for homestash services.
"""

from __future__ import annotations

from typing import Any, Optional, Sequence

from core.config import (
    DEFAULT_PAGE_SIZE,
    MAX_DESCRIPTION_LENGTH,
    MAX_NAME_LENGTH,
    MAX_PAGE_SIZE,
    MAX_STORAGE_PATH_LENGTH,
)
from core.errors import ValidationIssue

SORT_ORDERS = ("asc", "desc")


def validate_name(value: Any, field: str = "name", max_len: int = MAX_NAME_LENGTH) -> str:
    """Trim, reject blank, reject raw length above max; return the trimmed value."""
    if not isinstance(value, str):
        raise ValidationIssue(f"{field} must be a string", field=field, error_type="invalid_type")
    if len(value) > max_len:
        raise ValidationIssue(
            f"{field} must be between 1 and {max_len} characters",
            field=field,
            error_type="max_length",
        )
    trimmed = value.strip()
    if not trimmed:
        raise ValidationIssue(f"{field} cannot be empty or only whitespace", field=field, error_type="required")
    return trimmed


def validate_description(
    value: Any,
    field: str = "description",
    max_len: int = MAX_DESCRIPTION_LENGTH,
) -> Optional[str]:
    """Optional free text; blank input is stored as NULL."""
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValidationIssue(f"{field} must be a string", field=field, error_type="invalid_type")
    if len(value) > max_len:
        raise ValidationIssue(f"{field} exceeds max length {max_len}", field=field, error_type="max_length")
    trimmed = value.strip()
    return trimmed or None


def validate_quantity(value: Any, field: str = "quantity") -> Optional[int]:
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationIssue(f"{field} must be an integer", field=field, error_type="invalid_type")
    if value <= 0:
        raise ValidationIssue(f"{field} must be a positive integer", field=field, error_type="out_of_range")
    return value


def validate_flag(value: Any, field: str) -> bool:
    if not isinstance(value, bool):
        raise ValidationIssue(f"{field} must be a boolean", field=field, error_type="invalid_type")
    return value


def validate_id(value: Any, field: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValidationIssue(f"{field} must be a non-empty string", field=field, error_type="required")
    if len(value) > 36:
        raise ValidationIssue(f"{field} is not a valid id", field=field, error_type="invalid_id")
    return value.strip()


def validate_sort(sort: Any, order: Any, allowed: Sequence[str]) -> tuple[str, str]:
    if sort not in allowed:
        expected = " | ".join(f"'{value}'" for value in allowed)
        raise ValidationIssue(f"sort must be one of {expected}", field="sort", error_type="invalid_value")
    if order not in SORT_ORDERS:
        raise ValidationIssue("order must be 'asc' or 'desc'", field="order", error_type="invalid_value")
    return sort, order


def validate_page(page: Any, limit: Any) -> tuple[int, int]:
    if page is None:
        page = 1
    if limit is None:
        limit = DEFAULT_PAGE_SIZE
    if isinstance(page, bool) or not isinstance(page, int) or page < 1:
        raise ValidationIssue("page must be a positive integer", field="page", error_type="out_of_range")
    validate_limit(limit, "limit", MAX_PAGE_SIZE)
    return page, limit


def validate_limit(value: Any, field: str, max_value: int) -> None:
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0 or value > max_value:
        raise ValidationIssue(f"{field} must be between 1 and {max_value}", field=field, error_type="out_of_range")


def validate_optional_text(value: Optional[str], field: str, max_len: int) -> None:
    if value is None:
        return
    if not isinstance(value, str):
        raise ValidationIssue(f"{field} must be a string", field=field, error_type="invalid_type")
    if len(value) > max_len:
        raise ValidationIssue(f"{field} exceeds max length {max_len}", field=field, error_type="max_length")


def validate_storage_path(value: Any, field: str = "storage_path") -> str:
    """Opaque relative path into the blob store; never absolute, never escaping."""
    if not isinstance(value, str) or not value.strip():
        raise ValidationIssue(f"{field} must be a non-empty string", field=field, error_type="required")
    path = value.strip()
    if len(path) > MAX_STORAGE_PATH_LENGTH:
        raise ValidationIssue(
            f"{field} exceeds max length {MAX_STORAGE_PATH_LENGTH}",
            field=field,
            error_type="max_length",
        )
    if path.startswith("/") or ".." in path.split("/"):
        raise ValidationIssue(f"{field} must be a relative path", field=field, error_type="invalid_value")
    return path
