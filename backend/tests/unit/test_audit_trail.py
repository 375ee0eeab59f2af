"""Unit tests for the audit trail

Tests cover:
- Entity create/update/delete envelopes
- Field-level diffs
- Auth events
- Failure isolation (persistence errors never reach the caller)
- Fire-and-forget scheduling
- Paginated queries
"""

from datetime import timedelta

from audit.schemas import AuditActor, AuditEnvelope, AuditModule, FieldChange
from audit.service import AuditTrail, client_ip_from_headers, diff_fields, user_agent_from_headers
from infrastructure.memory_store import InMemoryRecordStore
from tenancy.context import get_tenant_id_or_none

ACTOR = AuditActor(id="user-1", name="Ada Admin", role="admin")


class TestDiffFields:
    """Test field-level diffs"""

    def test_only_changed_fields_in_order(self):
        before = {"name": "Piano", "price": 100, "seats": 10}
        after = {"name": "Piano", "price": 120, "seats": 12}

        assert diff_fields(before, after) == [
            FieldChange(field="price", old_value="100", new_value="120"),
            FieldChange(field="seats", old_value="10", new_value="12"),
        ]

    def test_field_filter_controls_order(self):
        before = {"a": 1, "b": 1}
        after = {"a": 2, "b": 2}

        assert [change.field for change in diff_fields(before, after, fields=["b", "a"])] == ["b", "a"]

    def test_none_rendered_as_empty_string(self):
        assert diff_fields({"note": None}, {"note": "hi"}) == [
            FieldChange(field="note", old_value="", new_value="hi")
        ]


class TestHeaderHelpers:
    def test_forwarded_for_first_hop(self):
        headers = {"x-forwarded-for": "203.0.113.1, 10.0.0.1", "x-real-ip": "10.0.0.2"}
        assert client_ip_from_headers(headers, fallback="127.0.0.1") == "203.0.113.1"

    def test_real_ip_then_fallback(self):
        assert client_ip_from_headers({"x-real-ip": "10.0.0.2"}) == "10.0.0.2"
        assert client_ip_from_headers({}, fallback="127.0.0.1") == "127.0.0.1"

    def test_user_agent(self):
        assert user_agent_from_headers({"user-agent": "curl/8"}) == "curl/8"


class TestEntityEvents:
    """Test entity mutation entries"""

    async def test_create_entry(self, audit_trail, store, clock):
        await audit_trail.log_entity_create(
            AuditModule.COURSES, "course-1", "Piano 101", ACTOR, "tenant-a",
            ip_address="203.0.113.1", user_agent="pytest", details={"starts": clock()},
        )

        entry = store.snapshot("audit_logs")[0]
        assert entry["module"] == "courses"
        assert entry["action"] == "CREATE"
        assert entry["tenant_id"] == "tenant-a"
        assert entry["actor_name"] == "Ada Admin"
        assert entry["timestamp"] == clock()
        assert entry["details"] == {"starts": clock().isoformat().replace("+00:00", "Z")}

    async def test_update_entry_carries_diff(self, audit_trail, store):
        changes = diff_fields({"price": 100}, {"price": 120})

        await audit_trail.log_entity_update("payments", "pay-1", "Invoice 7", changes, ACTOR, "tenant-a")

        entry = store.snapshot("audit_logs")[0]
        assert entry["action"] == "UPDATE"
        assert entry["changes"] == [{"field": "price", "old_value": "100", "new_value": "120"}]

    async def test_empty_update_records_nothing(self, audit_trail, store):
        await audit_trail.log_entity_update("payments", "pay-1", "Invoice 7", [], ACTOR, "tenant-a")
        assert store.snapshot("audit_logs") == []

    async def test_delete_entry(self, audit_trail, store):
        await audit_trail.log_entity_delete("students", "stu-1", "Sam", ACTOR, "tenant-a", details={"name": "Sam"})

        entry = store.snapshot("audit_logs")[0]
        assert entry["action"] == "DELETE"
        assert entry["details"] == {"name": "Sam"}

    async def test_entry_written_under_its_own_tenant(self, audit_trail, store, clock):
        await audit_trail.log_auth_event("LOGOUT", ACTOR, "tenant-b")

        assert store.snapshot("audit_logs")[0]["tenant_id"] == "tenant-b"
        assert store.snapshot("audit_logs")[0]["module"] == "auth"
        assert get_tenant_id_or_none() is None


class TestFailureIsolation:
    """Audit failures are logged, never raised"""

    async def test_persistence_failure_swallowed(self, clock, caplog):
        class BrokenStore(InMemoryRecordStore):
            async def insert_many(self, collection, documents):
                raise ConnectionError("audit store down")

        trail = AuditTrail(BrokenStore(), clock=clock)

        await trail.log_entity_create("courses", "c-1", "Piano", ACTOR, "tenant-a")

        assert "Failed to persist audit entry" in caplog.text

    async def test_record_reports_failure(self, clock):
        class BrokenStore(InMemoryRecordStore):
            async def insert_many(self, collection, documents):
                raise ConnectionError("audit store down")

        envelope = AuditEnvelope(tenant_id="tenant-a", module="auth", action="LOGIN", timestamp=clock(), actor=ACTOR)

        assert await AuditTrail(BrokenStore(), clock=clock).record(envelope) is False
        assert await AuditTrail(InMemoryRecordStore(), clock=clock).record(envelope) is True

    async def test_scheduled_failure_does_not_raise_on_flush(self, clock):
        class BrokenStore(InMemoryRecordStore):
            async def insert_many(self, collection, documents):
                raise ConnectionError("audit store down")

        trail = AuditTrail(BrokenStore(), clock=clock)
        task = trail.schedule_auth_event("LOGIN", ACTOR, "tenant-a")
        await trail.flush()

        assert task.done()
        assert task.exception() is None


class TestScheduling:
    """Fire-and-forget writes"""

    async def test_scheduled_writes_complete_on_flush(self, audit_trail, store):
        audit_trail.schedule_entity_create("courses", "c-1", "Piano", ACTOR, "tenant-a")
        audit_trail.schedule_auth_event("LOGOUT", ACTOR, "tenant-a")

        await audit_trail.flush()

        assert sorted(entry["action"] for entry in store.snapshot("audit_logs")) == ["CREATE", "LOGOUT"]

    async def test_scheduled_update_and_delete(self, audit_trail, store):
        changes = diff_fields({"title": "Piano"}, {"title": "Piano II"})
        audit_trail.schedule_entity_update("courses", "c-1", "Piano II", changes, ACTOR, "tenant-a")
        audit_trail.schedule_entity_update("courses", "c-2", "Violin", [], ACTOR, "tenant-a")
        audit_trail.schedule_entity_delete("courses", "c-3", "Cello", ACTOR, "tenant-a")

        await audit_trail.flush()

        entries = {entry["entity_id"]: entry for entry in store.snapshot("audit_logs")}
        assert set(entries) == {"c-1", "c-3"}
        assert entries["c-1"]["action"] == "UPDATE"
        assert entries["c-1"]["changes"] == [{"field": "title", "old_value": "Piano", "new_value": "Piano II"}]
        assert entries["c-3"]["action"] == "DELETE"

    async def test_flush_without_pending_is_noop(self, audit_trail):
        await audit_trail.flush()


class TestQuery:
    """Paginated, tenant-scoped reads"""

    async def _seed(self, audit_trail, clock):
        for i in range(5):
            await audit_trail.log_entity_create("courses", f"c-{i}", f"Course {i}", ACTOR, "tenant-a")
            clock.advance(minutes=1)
        await audit_trail.log_auth_event("LOGOUT", ACTOR, "tenant-a")
        await audit_trail.log_auth_event("LOGOUT", ACTOR, "tenant-b")

    async def test_newest_first_with_pagination(self, audit_trail, clock):
        await self._seed(audit_trail, clock)

        entries, total = await audit_trail.query("tenant-a", module="courses", page=1, per_page=2)

        assert total == 5
        assert [entry["entity_id"] for entry in entries] == ["c-4", "c-3"]

        entries, _ = await audit_trail.query("tenant-a", module="courses", page=3, per_page=2)
        assert [entry["entity_id"] for entry in entries] == ["c-0"]

    async def test_filters_and_tenant_scope(self, audit_trail, clock):
        await self._seed(audit_trail, clock)

        entries, total = await audit_trail.query("tenant-a", action="LOGOUT")
        assert total == 1
        assert entries[0]["tenant_id"] == "tenant-a"

    async def test_date_window(self, audit_trail, clock):
        start = clock()
        await self._seed(audit_trail, clock)

        _, total = await audit_trail.query(
            "tenant-a",
            start_date=start + timedelta(minutes=1),
            end_date=start + timedelta(minutes=3),
        )
        assert total == 3
