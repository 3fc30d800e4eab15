"""
Tests for the Audit Logger.

Covers the generic log() entry point, the convenience helpers and the
best-effort failure contract.
"""
import asyncio
import json
import logging
from decimal import Decimal
from unittest.mock import AsyncMock, patch

import pytest
from pydantic import ValidationError
from sqlalchemy import select

from gladgrade.audit.schemas import AuditActor, AuditEntry, RequestProvenance
from gladgrade.audit.services import AuditLogger, AuditWriteResult
from gladgrade.models.audit import AuditLog


async def _fetch(database, record_id) -> AuditLog:
    async with database.session() as session:
        result = await session.execute(select(AuditLog).where(AuditLog.id == record_id))
        return result.scalar_one()


# =============================================================================
# Unit Tests - AuditEntry
# =============================================================================

class TestAuditEntry:
    """Tests for AuditEntry validation and defaults."""

    def test_defaults_applied(self):
        entry = AuditEntry(action_type="CREATE", action_description="x")

        assert entry.business_context == "general"
        assert entry.severity_level == "info"
        assert entry.actor is None

    def test_none_and_blank_fall_back_to_defaults(self):
        entry = AuditEntry(
            action_type="CREATE",
            action_description="x",
            business_context="  ",
            severity_level=None,
        )

        assert entry.business_context == "general"
        assert entry.severity_level == "info"

    @pytest.mark.parametrize("description", ["", "   "])
    def test_empty_description_rejected(self, description):
        with pytest.raises(ValidationError):
            AuditEntry(action_type="CREATE", action_description=description)

    def test_empty_action_type_rejected(self):
        with pytest.raises(ValidationError):
            AuditEntry(action_type="", action_description="Something happened")

    def test_unknown_severity_rejected(self):
        with pytest.raises(ValidationError):
            AuditEntry(action_type="CREATE", action_description="x", severity_level="fatal")

    def test_provenance_fills_unset_fields_only(self):
        entry = AuditEntry(action_type="LOGIN", action_description="Signed in", ip_address="10.0.0.1")
        merged = entry.with_provenance(RequestProvenance(ip_address="192.168.1.1", user_agent="curl/8"))

        assert merged.ip_address == "10.0.0.1"
        assert merged.user_agent == "curl/8"


# =============================================================================
# Integration Tests - log()
# =============================================================================

class TestLog:
    """Tests for AuditLogger.log against a real database."""

    @pytest.mark.asyncio
    async def test_example_scenario(self, audit):
        """A prospect creation entry is stored with defaults applied."""
        result = await audit.log(AuditEntry(
            action_type="CREATE",
            table_name="prospects",
            record_id=42,
            action_description="Created new prospect: Acme Corp",
            new_values={"business_name": "Acme Corp"},
            business_context="sales_pipeline",
        ))

        assert result.logged
        assert result.record_id > 0

        recent = await audit.get_recent_activity(1)
        assert len(recent) == 1
        record = recent[0]
        assert record.id == result.record_id
        assert record.table_name == "prospects"
        assert record.record_id == 42
        assert record.severity_level == "info"
        assert record.business_context == "sales_pipeline"

    @pytest.mark.asyncio
    async def test_defaults_persisted(self, audit, database):
        result = await audit.log(AuditEntry(action_type="CREATE", action_description="x"))

        record = await _fetch(database, result.record_id)
        assert record.business_context == "general"
        assert record.severity_level == "info"
        assert record.created_at is not None

    @pytest.mark.asyncio
    async def test_optional_fields_may_be_absent(self, audit, database):
        """System events carry no actor, entity or snapshots."""
        result = await audit.log(AuditEntry(action_type="LOGOUT", action_description="Session expired"))

        record = await _fetch(database, result.record_id)
        assert record.user_id is None
        assert record.user_name is None
        assert record.table_name is None
        assert record.record_id is None
        assert record.old_values is None
        assert record.new_values is None
        assert record.changed_fields is None

    @pytest.mark.asyncio
    async def test_actor_and_snapshots_stored(self, audit, database):
        actor = AuditActor(user_id=4, user_email="m@gladgrade.com", user_name="Miguel", user_role="super_admin")
        result = await audit.log(AuditEntry(
            actor=actor,
            action_type="UPDATE",
            table_name="business_clients",
            record_id=3,
            action_description="Updated client: Joe's Diner",
            old_values={"phone": "555-0100"},
            new_values={"phone": "555-0199", "balance": Decimal("12.50")},
            changed_fields=["phone"],
            business_context="client_management",
            ip_address="203.0.113.9",
            user_agent="Mozilla/5.0",
        ))

        record = await _fetch(database, result.record_id)
        assert record.user_id == 4
        assert record.user_role == "super_admin"
        assert json.loads(record.old_values) == {"phone": "555-0100"}
        assert json.loads(record.new_values) == {"balance": "12.50", "phone": "555-0199"}
        assert record.changed_fields == ["phone"]
        assert record.ip_address == "203.0.113.9"

    @pytest.mark.asyncio
    async def test_append_only(self, audit, database, count_rows):
        """N successful logs add N rows and leave earlier rows untouched."""
        first = await audit.log(AuditEntry(action_type="CREATE", action_description="first"))
        before = await count_rows("audit_logs")
        original = await _fetch(database, first.record_id)

        for i in range(3):
            result = await audit.log(AuditEntry(action_type="UPDATE", action_description=f"change {i}"))
            assert result.logged

        assert await count_rows("audit_logs") == before + 3
        unchanged = await _fetch(database, first.record_id)
        assert unchanged.action_description == original.action_description
        assert unchanged.created_at == original.created_at

    @pytest.mark.asyncio
    async def test_ids_increase(self, audit):
        ids = []
        for i in range(3):
            ids.append((await audit.log(AuditEntry(action_type="CREATE", action_description=f"e{i}"))).record_id)

        assert ids == sorted(ids)
        assert len(set(ids)) == 3

    @pytest.mark.asyncio
    async def test_oversized_snapshot_is_summarised(self, database):
        audit = AuditLogger(database, snapshot_max_bytes=64)
        result = await audit.log(AuditEntry(
            action_type="UPDATE",
            action_description="Big change",
            new_values={"description": "x" * 500},
        ))

        record = await _fetch(database, result.record_id)
        stored = json.loads(record.new_values)
        assert stored["_truncated"] is True
        assert stored["_keys"] == ["description"]


# =============================================================================
# Failure Handling
# =============================================================================

class TestBestEffort:
    """A failing store never raises into the caller."""

    @pytest.mark.asyncio
    async def test_unreachable_database_returns_not_logged(self, broken_audit, caplog):
        with caplog.at_level(logging.ERROR, logger="gladgrade.audit.services"):
            result = await broken_audit.log(AuditEntry(action_type="CREATE", action_description="x"))

        assert result.logged is False
        assert result.record_id is None
        assert result.error
        assert "Failed to create audit log" in caplog.text

    @pytest.mark.asyncio
    async def test_business_result_unaffected(self, broken_audit):
        """The calling operation's own result survives a failed audit write."""
        async def create_prospect():
            prospect = {"id": 42, "business_name": "Acme Corp"}
            await broken_audit.log_entity_creation(None, "prospects", 42, prospect)
            return prospect

        assert await create_prospect() == {"id": 42, "business_name": "Acme Corp"}

    @pytest.mark.asyncio
    async def test_missing_table_returns_not_logged(self, audit, database):
        await database.execute("DROP TABLE audit_logs")

        result = await audit.log(AuditEntry(action_type="CREATE", action_description="x"))

        assert isinstance(result, AuditWriteResult)
        assert result.record_id is None
        assert "audit_logs" in result.error

    @pytest.mark.asyncio
    async def test_slow_write_times_out(self, database):
        audit = AuditLogger(database, timeout=0.05)

        async def slow_insert(entry):
            await asyncio.sleep(1)
            return 1

        with patch.object(audit, "_insert_audit_log", new=slow_insert):
            result = await audit.log(AuditEntry(action_type="CREATE", action_description="x"))

        assert not result.logged
        assert "timed out" in result.error

    @pytest.mark.asyncio
    async def test_unexpected_error_is_contained(self, audit):
        with patch.object(audit, "_insert_audit_log", new=AsyncMock(side_effect=RuntimeError("boom"))):
            result = await audit.log(AuditEntry(action_type="CREATE", action_description="x"))

        assert not result.logged
        assert result.error == "boom"

    @pytest.mark.asyncio
    async def test_recent_activity_failure_returns_empty(self, broken_audit):
        assert await broken_audit.get_recent_activity(10) == []


# =============================================================================
# Convenience Methods
# =============================================================================

class TestConvenienceMethods:
    """Tests for creation, conversion and update helpers."""

    @pytest.mark.asyncio
    async def test_log_entity_creation(self, audit, database, manager):
        result = await audit.log_entity_creation(
            manager,
            "prospects",
            42,
            {"business_name": "Acme Corp", "status": "new"},
            entity_label="prospect",
            business_context="sales_pipeline",
        )

        record = await _fetch(database, result.record_id)
        assert record.action_type == "CREATE"
        assert record.table_name == "prospects"
        assert record.record_id == 42
        assert record.action_description == "Created new prospect: Acme Corp"
        assert record.severity_level == "info"
        assert record.business_context == "sales_pipeline"
        assert json.loads(record.new_values)["status"] == "new"
        assert record.user_name == "Miguel"

    @pytest.mark.asyncio
    async def test_log_entity_creation_without_name_uses_id(self, audit, database):
        result = await audit.log_entity_creation(None, "sales_activities", 9, {"activity_type": "call"})

        record = await _fetch(database, result.record_id)
        assert record.action_description == "Created new sales_activities: #9"
        assert record.business_context == "general"
        assert record.user_id is None

    @pytest.mark.asyncio
    async def test_log_conversion(self, audit, database, manager):
        result = await audit.log_conversion(manager, 42, 17, 15000)

        record = await _fetch(database, result.record_id)
        assert record.action_type == "CONVERT"
        assert record.table_name == "prospects"
        assert record.record_id == 42
        assert record.severity_level == "info"
        assert "42" in record.action_description
        assert "17" in record.action_description
        assert "$15000" in record.action_description
        assert json.loads(record.new_values) == {"client_id": 17, "conversion_value": 15000}

    @pytest.mark.asyncio
    async def test_log_update_records_changed_fields(self, audit, database, manager):
        result = await audit.log_update(
            manager,
            "prospects",
            42,
            {"business_name": "Acme", "status": "new", "notes": None},
            {"business_name": "Acme", "status": "qualified", "notes": "Warm lead"},
            description="Updated prospect: Acme",
            business_context="sales_pipeline",
        )

        record = await _fetch(database, result.record_id)
        assert record.action_type == "UPDATE"
        assert record.changed_fields == ["status", "notes"]
        assert json.loads(record.old_values) == {"status": "new", "notes": None}
        assert json.loads(record.new_values) == {"status": "qualified", "notes": "Warm lead"}

    @pytest.mark.asyncio
    async def test_log_update_without_changes_writes_nothing(self, audit, count_rows, manager):
        result = await audit.log_update(
            manager, "prospects", 42, {"status": "new"}, {"status": "new"},
            description="Updated prospect: Acme",
        )

        assert not result.logged
        assert result.error == "no changes"
        assert await count_rows("audit_logs") == 0

    @pytest.mark.asyncio
    async def test_log_entity_creation_stringifies_snapshot_keys(self, audit, database):
        result = await audit.log_entity_creation(None, "prospects", 1, {1: "x", "business_name": "Acme"})

        assert result.logged
        record = await _fetch(database, result.record_id)
        assert record.action_description == "Created new prospects: Acme"
        assert json.loads(record.new_values) == {"1": "x", "business_name": "Acme"}

    @pytest.mark.asyncio
    async def test_log_update_with_mixed_key_types(self, audit, database):
        result = await audit.log_update(
            None, "prospects", 42, {1: "a", "status": "new"}, {1: "b", "status": "new"},
            description="Updated prospect: Acme",
        )

        record = await _fetch(database, result.record_id)
        assert record.changed_fields == ["1"]
        assert json.loads(record.new_values) == {"1": "b"}

    @pytest.mark.asyncio
    async def test_malformed_entry_is_not_raised(self, audit, count_rows, caplog):
        with caplog.at_level(logging.ERROR, logger="gladgrade.audit.services"):
            result = await audit.log_entity_creation(None, "prospects", "not-a-number", {"business_name": "Acme"})

        assert not result.logged
        assert result.error.startswith("invalid audit entry")
        assert "Failed to build audit entry" in caplog.text
        assert await count_rows("audit_logs") == 0

    @pytest.mark.asyncio
    async def test_log_update_with_non_mapping_is_not_raised(self, audit, count_rows):
        result = await audit.log_update(None, "prospects", 42, None, {"status": "new"}, description="Updated")

        assert not result.logged
        assert await count_rows("audit_logs") == 0

    @pytest.mark.asyncio
    async def test_log_conversion_with_malformed_ids_is_not_raised(self, audit, count_rows):
        result = await audit.log_conversion(None, "abc", 17, 100)

        assert not result.logged
        assert await count_rows("audit_logs") == 0

    @pytest.mark.asyncio
    async def test_nested_mixed_keys_are_kept(self, audit, database):
        result = await audit.log(AuditEntry(
            action_type="UPDATE",
            action_description="Updated metadata",
            new_values={"meta": {1: "a", "b": 2}},
        ))

        assert result.logged
        record = await _fetch(database, result.record_id)
        assert json.loads(record.new_values) == {"meta": {"1": "a", "b": 2}}
