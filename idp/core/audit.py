"""Audit trail for administrative writes (users, roles, attribute overrides).

Events are appended to a JSONL file, one JSON object per line, each signed
with HMAC-SHA256 over its canonical JSON form when a signing key is set.
"""
from __future__ import annotations
import datetime
import hashlib
import hmac
import json
import logging
from pathlib import Path
from typing import Any, Literal

logger = logging.getLogger(__name__)

AUDIT_LOG_FILENAME = "attribute-events.jsonl"

EventType = Literal[
    "user_create", "user_update", "user_delete",
    "user_attributes_update", "role_attributes_update", "service_attributes_update",
]


class AuditTrail:
    """Signed append-only event log."""

    def __init__(self, directory: Path | str, signing_key: str = ""):
        self.directory = Path(directory)
        self.log_file = self.directory / AUDIT_LOG_FILENAME
        self._signing_key = signing_key.strip().encode("utf-8")

    def _ensure_dir(self) -> None:
        """Create audit directory with restricted permissions."""
        self.directory.mkdir(parents=True, exist_ok=True)
        self.directory.chmod(0o700)

    def sign(self, event: dict[str, Any]) -> str:
        if not self._signing_key:
            return ""
        canonical = json.dumps(event, sort_keys=True, separators=(",", ":"))
        return hmac.new(self._signing_key, canonical.encode("utf-8"), hashlib.sha256).hexdigest()

    def log_event(
        self,
        event_type: EventType,
        subject: str,
        *,
        operator: str = "system",
        details: dict[str, Any] | None = None,
        success: bool = True,
    ) -> None:
        """Append an event to the audit trail.

        Args:
            event_type: Kind of administrative write
            subject: Username or role name affected by the write
            operator: Who performed it (API client id or "system")
            details: Additional context (changed attribute names, scope, ...)
            success: Whether the operation succeeded
        """
        self._ensure_dir()

        event = {
            "timestamp": datetime.datetime.now(datetime.timezone.utc).isoformat(),
            "event_type": event_type,
            "subject": subject,
            "operator": operator,
            "success": success,
            "details": details or {},
        }

        signature = self.sign(event)
        if signature:
            event["signature"] = signature

        with self.log_file.open("a", encoding="utf-8") as f:
            f.write(json.dumps(event, ensure_ascii=False) + "\n")

        self.log_file.chmod(0o600)

    def safe_log_event(self, event_type: EventType, subject: str, **kwargs) -> bool:
        """Like log_event() but logs I/O errors instead of raising them.

        Returns:
            True if the event was written, False otherwise
        """
        try:
            self.log_event(event_type, subject, **kwargs)
            return True
        except OSError as exc:
            logger.warning("Failed to log %s event for %s: %s", event_type, subject, exc)
            return False

    def verify(self) -> tuple[int, int]:
        """Verify all signatures in the audit log.

        Returns:
            Tuple of (total_events, valid_signatures)
        """
        if not self.log_file.exists():
            return 0, 0

        total = 0
        valid = 0

        with self.log_file.open("r", encoding="utf-8") as f:
            for line in f:
                if not line.strip():
                    continue
                total += 1
                try:
                    event = json.loads(line)
                except json.JSONDecodeError:
                    continue
                stored_sig = event.pop("signature", "")
                if stored_sig and hmac.compare_digest(stored_sig, self.sign(event)):
                    valid += 1

        return total, valid
