"""Test helper utilities for expiry alerts tests."""

from .seed import (
    add_asset,
    add_company_document,
    add_employee_document,
    add_member,
    add_notification,
    add_tenant,
    make_record,
)

__all__ = [
    "add_asset",
    "add_company_document",
    "add_employee_document",
    "add_member",
    "add_notification",
    "add_tenant",
    "make_record",
]
