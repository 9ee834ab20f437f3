"""
Tests for the write path: store change, audit entry and live event as one unit.
"""
import threading
from unittest import mock

import pytest
from sqlalchemy.exc import SQLAlchemyError

from zera_oracle.errors import NotFoundError, RateLimited
from zera_oracle.models import AuditEntry, PriceRecord
from zera_oracle.models.db_utils import get_session_scope
from zera_oracle.services.audit_service import audit_service
from zera_oracle.services.store_service import store_service
from zera_oracle.services.write_pipeline import write_pipeline
from zera_oracle.systems.auth_system import PEGGER_PRINCIPAL, Principal
from zera_oracle.systems.broadcaster import broadcaster

from conftest import ZERA_MINT, make_app

ALICE = Principal("alice")


def current_price(mint):
    with get_session_scope() as session:
        return store_service.get_price(session, mint).to_dict()


def all_entries():
    with get_session_scope() as session:
        entries, _ = audit_service.list_entries(session, limit=500)
    return list(reversed(entries))


def test_zera_lifecycle_is_audited_in_order(app_ctx):
    """Create, patch, delete: three audit entries with matching snapshots."""
    created = write_pipeline.upsert_price(ALICE, "ZERA", {"usd_mantissa": "10", "usd_scale": 2})
    assert created.after["usd_mantissa"] == "10"

    patched = write_pipeline.patch_price(ALICE, "ZERA", {"usd_mantissa": "8"})
    assert patched.after["usd_mantissa"] == "8"
    assert patched.after["usd_scale"] == 2

    write_pipeline.delete_price(ALICE, "ZERA")
    with pytest.raises(NotFoundError):
        current_price("ZERA")

    entries = all_entries()
    assert [e["action"] for e in entries] == ["UPSERT_PRICE", "PATCH_PRICE", "DELETE_PRICE"]
    assert entries[0]["before"] is None
    assert entries[0]["after"]["usd_mantissa"] == "10"
    assert entries[1]["before"] == entries[0]["after"]
    assert entries[1]["after"]["usd_mantissa"] == "8"
    assert entries[2]["before"] == entries[1]["after"]
    assert entries[2]["after"] is None
    assert all(e["actor"] == "alice" for e in entries)
    assert entries[0]["seq"] < entries[1]["seq"] < entries[2]["seq"]


def test_audit_after_matches_store(app_ctx):
    result = write_pipeline.upsert_price(ALICE, ZERA_MINT, {"symbol": "ZERA", "usd_mantissa": "10", "usd_scale": 2})
    entry = all_entries()[-1]
    assert entry["after"] == current_price(ZERA_MINT) == result.after
    assert entry["seq"] == result.seq


def test_human_writes_are_tagged_admin(app_ctx):
    result = write_pipeline.upsert_price(ALICE, ZERA_MINT, {"usd_mantissa": "10", "usd_scale": 2})
    assert result.after["updated_by"] == "admin:alice"

    result = write_pipeline.upsert_price(PEGGER_PRINCIPAL, ZERA_MINT, {"usd_mantissa": "11", "usd_scale": 2})
    assert result.after["updated_by"] == "pegger"


def test_failed_validation_leaves_no_trace(app_ctx):
    subscription = broadcaster.subscribe()
    with pytest.raises(NotFoundError):
        write_pipeline.patch_price(ALICE, "missing", {"usd_mantissa": "1"})
    assert all_entries() == []
    assert subscription.pending() == 0


def test_audit_failure_rolls_back_the_mutation(app_ctx):
    """If the audit append fails, the price change must not persist either."""
    subscription = broadcaster.subscribe()
    with mock.patch.object(audit_service, "append", side_effect=SQLAlchemyError("disk I/O error")):
        with pytest.raises(SQLAlchemyError):
            write_pipeline.upsert_price(ALICE, ZERA_MINT, {"usd_mantissa": "10", "usd_scale": 2})

    with get_session_scope() as session:
        assert session.get(PriceRecord, ZERA_MINT) is None
        assert session.query(AuditEntry).count() == 0
    assert subscription.pending() == 0


def test_execute_dispatches_by_name(app_ctx):
    result = write_pipeline.execute(ALICE, "upsert_symbol", "ZERA", ZERA_MINT)
    assert result.action == "UPSERT_SYMBOL"
    with pytest.raises(ValueError):
        write_pipeline.execute(ALICE, "drop_everything")


def test_commit_happens_before_publish(app_ctx):
    """A subscriber reacting to an event sees the committed state."""
    seen = []

    def check_store(event):
        seen.append((event.key, current_price(event.key)["usd_mantissa"]))

    with mock.patch.object(broadcaster, "publish", side_effect=check_store):
        write_pipeline.upsert_price(ALICE, ZERA_MINT, {"usd_mantissa": "42", "usd_scale": 2})
    assert seen == [(ZERA_MINT, "42")]


def test_rate_limit_applies_to_admins_only():
    app = make_app(WRITE_RATE_LIMIT_PER_MINUTE=2)
    with app.app_context():
        for n in range(2):
            write_pipeline.upsert_price(ALICE, f"mint-{n}", {"usd_mantissa": "1", "usd_scale": 0})
        with pytest.raises(RateLimited):
            write_pipeline.upsert_price(ALICE, "mint-3", {"usd_mantissa": "1", "usd_scale": 0})

        # Another admin has their own quota, and the pegger has none.
        write_pipeline.upsert_price(Principal("bob"), "mint-4", {"usd_mantissa": "1", "usd_scale": 0})
        for n in range(5):
            write_pipeline.upsert_price(PEGGER_PRINCIPAL, "mint-5", {"usd_mantissa": str(n), "usd_scale": 0})

        with get_session_scope() as session:
            assert session.get(PriceRecord, "mint-3") is None


def test_concurrent_writers_are_serialized(app):
    """Parallel patches never interleave: each audit entry's before is the previous entry's after."""
    with app.app_context():
        write_pipeline.upsert_price(ALICE, ZERA_MINT, {"usd_mantissa": "0", "usd_scale": 2})

    errors = []

    def writer(worker):
        principal = Principal(f"writer-{worker}")
        try:
            with app.app_context():
                for n in range(20):
                    write_pipeline.patch_price(principal, ZERA_MINT, {"usd_mantissa": str(worker * 100 + n)})
        except Exception as e:
            errors.append(e)

    threads = [threading.Thread(target=writer, args=(worker,)) for worker in range(1, 5)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=30)
    assert errors == []

    with app.app_context():
        entries = all_entries()
        final = current_price(ZERA_MINT)
    assert len(entries) == 81
    for previous, entry in zip(entries, entries[1:]):
        assert entry["seq"] > previous["seq"]
        assert entry["before"] == previous["after"]
    assert entries[-1]["after"] == final
