"""Tests for logging context propagation."""

import pytest

from expiry_alerts.logging.context import (
    clear_log_context,
    get_log_context,
    log_context,
    pop_log_context,
    push_log_context,
)


@pytest.fixture(autouse=True)
def clean_context():
    clear_log_context()
    yield
    clear_log_context()


def test_empty_context():
    assert get_log_context() == {}


def test_push_and_pop():
    token = push_log_context(run_id="abc")
    assert get_log_context() == {"run_id": "abc"}

    pop_log_context(token)
    assert get_log_context() == {}


def test_nested_context():
    outer = push_log_context(run_id="abc", job="company-document-expiry")
    inner = push_log_context(tenant_id="org_1")

    assert get_log_context() == {
        "run_id": "abc",
        "job": "company-document-expiry",
        "tenant_id": "org_1",
    }

    pop_log_context(inner)
    assert "tenant_id" not in get_log_context()
    pop_log_context(outer)


def test_context_override():
    with log_context(tenant_id="org_1"):
        with log_context(tenant_id="org_2"):
            assert get_log_context()["tenant_id"] == "org_2"
        assert get_log_context()["tenant_id"] == "org_1"


def test_context_manager_exception():
    with pytest.raises(RuntimeError):
        with log_context(tenant_id="org_1"):
            raise RuntimeError("boom")

    assert get_log_context() == {}


def test_get_returns_copy():
    with log_context(run_id="abc"):
        snapshot = get_log_context()
        snapshot["run_id"] = "mutated"
        assert get_log_context()["run_id"] == "abc"

