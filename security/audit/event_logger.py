"""
Audit logging for archive mutations and access decisions.

Logs:
  - Archive changes (fund/inventory/case create, update, delete)
  - Document changes
  - User administration and logins
  - Denied attempts (status="denied")

Events are appended to the `auditLog` key, keeping only the newest
`max_events`, and mirrored to loguru.
"""

from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from loguru import logger

from storage.kv_store import AUDIT_LOG_KEY, KeyValueStore


@dataclass(frozen=True)
class AuditEvent:
    timestamp: str
    actor_id: Optional[str]
    action: str
    target: Optional[str] = None
    status: str = "success"
    details: Dict[str, Any] = field(default_factory=dict)

    def as_text(self) -> str:
        entry = f"[{self.timestamp}] {self.actor_id or 'anonymous'} - {self.action}"
        if self.target:
            entry += f" :: {self.target}"
        if self.status != "success":
            entry += f" ({self.status})"
        return entry


class AuditLogger:
    """Bounded audit trail persisted in the key-value store"""

    def __init__(self, store: KeyValueStore, max_events: int = 1000):
        if max_events < 1:
            raise ValueError(f"max_events must be at least 1, got {max_events}")
        self._store = store
        self._max_events = max_events

    def record(
        self,
        actor_id: Optional[str],
        action: str,
        target: Optional[str] = None,
        *,
        status: str = "success",
        details: Optional[Dict[str, Any]] = None,
    ) -> AuditEvent:
        event = AuditEvent(
            timestamp=datetime.now(timezone.utc).isoformat(timespec="seconds"),
            actor_id=actor_id,
            action=action,
            target=target,
            status=status,
            details=dict(details or {}),
        )

        events = self._store.read_json(AUDIT_LOG_KEY, [])
        if not isinstance(events, list):
            events = []
        events.append(asdict(event))
        self._store.write_json(AUDIT_LOG_KEY, events[-self._max_events:])

        logger.info(f"[AUDIT] {event.as_text()}")
        return event

    def get_events(self, action: Optional[str] = None) -> List[AuditEvent]:
        events = self._store.read_json(AUDIT_LOG_KEY, [])
        if not isinstance(events, list):
            return []
        result = []
        for entry in events:
            try:
                event = AuditEvent(**entry)
            except TypeError:
                continue
            if action is None or event.action == action:
                result.append(event)
        return result
