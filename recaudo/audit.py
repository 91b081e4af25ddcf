"""
Audit Trail Module

Hash-chained immutable audit log with SHA-256 for tamper detection.
Every credit state change and provider configuration change is logged here.
"""

import hashlib
import json
import uuid
from datetime import datetime, timezone
from dataclasses import dataclass
from typing import Dict, List, Optional, Any
from enum import Enum

from .storage import StorageInterface, StorageRecord, serialize_value


class AuditEventType(Enum):
    """Types of audit events"""
    # Credit events
    CREDIT_CREATED = "credit_created"
    PAYMENT_REGISTERED = "payment_registered"
    MISSED_PAYMENT_REGISTERED = "missed_payment_registered"
    PAYMENT_AGREEMENT_REGISTERED = "payment_agreement_registered"
    PAYMENT_SCHEDULE_SAVED = "payment_schedule_saved"
    CONTRACT_ACCEPTED = "contract_accepted"
    CREDIT_RENEWED = "credit_renewed"
    CREDIT_REFINANCED = "credit_refinanced"
    CREDIT_PAID_OFF = "credit_paid_off"
    CREDIT_DEFAULTED = "credit_defaulted"

    # Provider events
    PROVIDER_SETTINGS_UPDATED = "provider_settings_updated"
    COMMISSION_REINVESTED = "commission_reinvested"


@dataclass
class AuditEvent(StorageRecord):
    """
    Immutable audit event with hash chaining for tamper detection
    """
    event_type: AuditEventType
    entity_type: str  # credit, provider, ...
    entity_id: str
    sequence: int     # Position in the chain
    previous_hash: str
    current_hash: str
    metadata: Dict[str, Any]
    user_id: Optional[str] = None

    def __post_init__(self):
        if self.metadata:
            self.metadata = {k: serialize_value(v) for k, v in self.metadata.items()}

    def calculate_hash(self) -> str:
        """
        Calculate SHA-256 hash of this event
        Hash includes all fields except current_hash to prevent circular reference
        """
        hash_data = {
            'id': self.id,
            'created_at': self.created_at.isoformat(),
            'event_type': self.event_type.value,
            'entity_type': self.entity_type,
            'entity_id': self.entity_id,
            'sequence': self.sequence,
            'previous_hash': self.previous_hash,
            'user_id': self.user_id,
            'metadata': self.metadata
        }

        json_data = json.dumps(hash_data, sort_keys=True, separators=(',', ':'))
        return hashlib.sha256(json_data.encode('utf-8')).hexdigest()

    def verify_hash(self) -> bool:
        """Verify that the current hash is correct"""
        return self.current_hash == self.calculate_hash()

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'AuditEvent':
        data = dict(data)
        if isinstance(data['created_at'], str):
            data['created_at'] = datetime.fromisoformat(data['created_at'])
        if isinstance(data['updated_at'], str):
            data['updated_at'] = datetime.fromisoformat(data['updated_at'])
        if isinstance(data['event_type'], str):
            data['event_type'] = AuditEventType(data['event_type'])
        return cls(**data)


class AuditTrail:
    """
    Hash-chained audit trail for tamper detection
    """

    def __init__(self, storage: StorageInterface, table_name: str = "audit_events",
                 enabled: bool = True):
        self.storage = storage
        self.table_name = table_name
        self.enabled = enabled

    def _chain_tail(self) -> Optional[Dict[str, Any]]:
        events = self.storage.load_all(self.table_name)
        if not events:
            return None
        return max(events, key=lambda e: e.get('sequence', 0))

    def log_event(
        self,
        event_type: AuditEventType,
        entity_type: str,
        entity_id: str,
        metadata: Optional[Dict[str, Any]] = None,
        user_id: Optional[str] = None
    ) -> Optional[AuditEvent]:
        """
        Log an audit event with hash chaining

        Args:
            event_type: Type of audit event
            entity_type: Type of entity being audited
            entity_id: ID of the entity
            metadata: Additional event-specific data
            user_id: ID of the collector/provider who initiated the action

        Returns:
            Created AuditEvent, or None when audit logging is disabled
        """
        if not self.enabled:
            return None

        # The storage transaction serializes chain appends
        with self.storage.atomic():
            now = datetime.now(timezone.utc)
            tail = self._chain_tail()

            event = AuditEvent(
                id=str(uuid.uuid4()),
                created_at=now,
                updated_at=now,
                event_type=event_type,
                entity_type=entity_type,
                entity_id=entity_id,
                sequence=(tail['sequence'] + 1) if tail else 1,
                previous_hash=tail['current_hash'] if tail else "",
                current_hash="",
                user_id=user_id,
                metadata=metadata or {}
            )
            event.current_hash = event.calculate_hash()

            self.storage.save(self.table_name, event.id, event.to_dict())
            return event

    def _load_events(self) -> List[AuditEvent]:
        events = [AuditEvent.from_dict(data) for data in self.storage.load_all(self.table_name)]
        events.sort(key=lambda e: e.sequence)
        return events

    def get_events_for_entity(
        self,
        entity_type: str,
        entity_id: str,
        limit: Optional[int] = None
    ) -> List[AuditEvent]:
        """
        Get all audit events for a specific entity, oldest first

        Args:
            entity_type: Type of entity
            entity_id: ID of entity
            limit: Maximum number of (most recent) events to return
        """
        events_data = self.storage.find(self.table_name, {
            'entity_type': entity_type,
            'entity_id': entity_id
        })
        events = [AuditEvent.from_dict(data) for data in events_data]
        events.sort(key=lambda e: e.sequence)

        if limit:
            events = events[-limit:]
        return events

    def get_events_by_type(self, event_type: AuditEventType,
                           limit: Optional[int] = None) -> List[AuditEvent]:
        """Get audit events of one type, oldest first"""
        events = [e for e in self._load_events() if e.event_type == event_type]
        if limit:
            events = events[-limit:]
        return events

    def verify_integrity(self) -> Dict[str, Any]:
        """
        Verify the integrity of the entire audit chain

        Returns:
            Dictionary with integrity check results
        """
        result = {
            'valid': True,
            'total_events': 0,
            'hash_errors': [],
            'chain_breaks': []
        }

        events = self._load_events()
        result['total_events'] = len(events)

        previous_hash = ""
        for i, event in enumerate(events):
            if not event.verify_hash():
                result['valid'] = False
                result['hash_errors'].append({
                    'event_id': event.id,
                    'position': i,
                    'expected_hash': event.calculate_hash(),
                    'actual_hash': event.current_hash
                })
            if event.previous_hash != previous_hash:
                result['valid'] = False
                result['chain_breaks'].append({
                    'event_id': event.id,
                    'position': i,
                    'expected_previous_hash': previous_hash,
                    'actual_previous_hash': event.previous_hash
                })
            previous_hash = event.current_hash

        return result

    def count_events(self) -> int:
        """Get total number of audit events"""
        return len(self.storage.load_all(self.table_name))
