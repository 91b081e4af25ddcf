"""
Test suite for audit module

Tests hash-chained audit trail, tamper detection and integrity verification.
"""

import pytest
from datetime import datetime, timezone
from decimal import Decimal

from recaudo.storage import InMemoryStorage
from recaudo.audit import AuditTrail, AuditEvent, AuditEventType


class TestAuditEvent:
    """Test AuditEvent functionality"""

    def make_event(self, **overrides):
        now = datetime.now(timezone.utc)
        fields = dict(
            id="AUDIT001",
            created_at=now,
            updated_at=now,
            event_type=AuditEventType.PAYMENT_REGISTERED,
            entity_type="credit",
            entity_id="CR001",
            sequence=1,
            previous_hash="",
            current_hash="",
            user_id="COL001",
            metadata={"amount": "120000"},
        )
        fields.update(overrides)
        return AuditEvent(**fields)

    def test_metadata_serialization(self):
        """Decimals, dates and enums in metadata become plain JSON values"""
        event = self.make_event(metadata={
            "amount": Decimal("120000.50"),
            "when": datetime(2024, 3, 1, tzinfo=timezone.utc),
            "type": AuditEventType.CREDIT_CREATED,
            "nested": {"values": [Decimal("1.1")]},
        })
        assert event.metadata["amount"] == "120000.50"
        assert event.metadata["when"] == "2024-03-01T00:00:00+00:00"
        assert event.metadata["type"] == "credit_created"
        assert event.metadata["nested"]["values"] == ["1.1"]

    def test_hash_is_deterministic(self):
        event = self.make_event()
        expected = event.calculate_hash()
        assert len(expected) == 64
        assert event.calculate_hash() == expected

    def test_hash_verification(self):
        event = self.make_event()
        event.current_hash = event.calculate_hash()
        assert event.verify_hash()

        event.current_hash = "tampered_hash"
        assert not event.verify_hash()

    def test_hash_covers_entity(self):
        now = datetime.now(timezone.utc)
        first = self.make_event(created_at=now, updated_at=now)
        second = self.make_event(created_at=now, updated_at=now)
        assert first.calculate_hash() == second.calculate_hash()

        second.entity_id = "CR002"
        assert first.calculate_hash() != second.calculate_hash()

    def test_round_trip(self):
        event = self.make_event()
        event.current_hash = event.calculate_hash()
        restored = AuditEvent.from_dict(event.to_dict())
        assert restored.event_type == AuditEventType.PAYMENT_REGISTERED
        assert restored.verify_hash()


class TestAuditTrail:
    """Test AuditTrail functionality"""

    def setup_method(self):
        self.storage = InMemoryStorage()
        self.audit_trail = AuditTrail(self.storage)

    def test_log_first_event(self):
        event = self.audit_trail.log_event(
            event_type=AuditEventType.CREDIT_CREATED,
            entity_type="credit",
            entity_id="CR001",
            metadata={"principal": Decimal("1000000")},
            user_id="COL001"
        )

        assert event.sequence == 1
        assert event.previous_hash == ""
        assert len(event.current_hash) == 64
        assert event.metadata["principal"] == "1000000"
        assert self.audit_trail.count_events() == 1

    def test_events_chain(self):
        first = self.audit_trail.log_event(AuditEventType.CREDIT_CREATED, "credit", "CR001")
        second = self.audit_trail.log_event(AuditEventType.PAYMENT_SCHEDULE_SAVED, "credit", "CR001")
        third = self.audit_trail.log_event(AuditEventType.PAYMENT_REGISTERED, "credit", "CR001")

        assert second.previous_hash == first.current_hash
        assert third.previous_hash == second.current_hash
        assert [first.sequence, second.sequence, third.sequence] == [1, 2, 3]

    def test_get_events_for_entity(self):
        self.audit_trail.log_event(AuditEventType.CREDIT_CREATED, "credit", "CR001")
        other = self.audit_trail.log_event(AuditEventType.PROVIDER_SETTINGS_UPDATED, "provider", "PROV001")
        self.audit_trail.log_event(AuditEventType.PAYMENT_REGISTERED, "credit", "CR001")

        events = self.audit_trail.get_events_for_entity("credit", "CR001")
        assert [e.event_type for e in events] == [
            AuditEventType.CREDIT_CREATED, AuditEventType.PAYMENT_REGISTERED
        ]
        assert other.id not in {e.id for e in events}

        latest = self.audit_trail.get_events_for_entity("credit", "CR001", limit=1)
        assert latest[0].event_type == AuditEventType.PAYMENT_REGISTERED

    def test_get_events_by_type(self):
        self.audit_trail.log_event(AuditEventType.CREDIT_CREATED, "credit", "CR001")
        self.audit_trail.log_event(AuditEventType.CREDIT_DEFAULTED, "credit", "CR001")
        self.audit_trail.log_event(AuditEventType.CREDIT_CREATED, "credit", "CR002")

        created = self.audit_trail.get_events_by_type(AuditEventType.CREDIT_CREATED)
        assert [e.entity_id for e in created] == ["CR001", "CR002"]

    def test_verify_integrity_valid_chain(self):
        for i in range(5):
            self.audit_trail.log_event(AuditEventType.MISSED_PAYMENT_REGISTERED, "credit", "CR001",
                                       metadata={"missed_payment_days": i + 1})

        result = self.audit_trail.verify_integrity()
        assert result["valid"] is True
        assert result["total_events"] == 5

    def test_tampered_metadata_detected(self):
        event = self.audit_trail.log_event(AuditEventType.PAYMENT_REGISTERED, "credit", "CR001",
                                           metadata={"amount": "120000"})
        self.audit_trail.log_event(AuditEventType.PAYMENT_REGISTERED, "credit", "CR001")

        data = self.storage.load(self.audit_trail.table_name, event.id)
        data["metadata"]["amount"] = "1"
        self.storage.save(self.audit_trail.table_name, event.id, data)

        result = self.audit_trail.verify_integrity()
        assert result["valid"] is False
        assert result["hash_errors"][0]["event_id"] == event.id

    def test_deleted_event_breaks_chain(self):
        self.audit_trail.log_event(AuditEventType.CREDIT_CREATED, "credit", "CR001")
        middle = self.audit_trail.log_event(AuditEventType.PAYMENT_REGISTERED, "credit", "CR001")
        self.audit_trail.log_event(AuditEventType.CREDIT_PAID_OFF, "credit", "CR001")

        # Drop the stored row behind the trail's back
        del self.storage._data[self.audit_trail.table_name][middle.id]

        result = self.audit_trail.verify_integrity()
        assert result["valid"] is False
        assert len(result["chain_breaks"]) == 1

    def test_disabled_trail_logs_nothing(self):
        trail = AuditTrail(self.storage, enabled=False)
        assert trail.log_event(AuditEventType.CREDIT_CREATED, "credit", "CR001") is None
        assert trail.count_events() == 0

    def test_event_rolls_back_with_enclosing_transaction(self):
        with pytest.raises(RuntimeError):
            with self.storage.atomic():
                self.audit_trail.log_event(AuditEventType.CREDIT_CREATED, "credit", "CR001")
                raise RuntimeError("write failed")
        assert self.audit_trail.count_events() == 0
