"""Audit trail for security-relevant client events.

Records are written as single ``[AUDIT:<LEVEL>] {json}`` lines on the
diagnostic stream (stderr), separate from command output. When a signing key
is configured, each record carries an HMAC-SHA256 signature over its canonical
JSON form so a collected trail can be verified later.
"""
from __future__ import annotations
import datetime
import hashlib
import hmac
import json
import sys
from typing import Any, Literal, Optional, TextIO

from lldap_cli.core.redaction import redact

AuditLevel = Literal["info", "warn", "error", "security"]

AuditAction = Literal[
    "login_attempt", "login_success", "login_failed", "login_rate_limited",
    "refresh_token_expiring", "session_timeout",
    "input_length_exceeded", "input_format_rejected",
]

AUDIT_PREFIX = "[AUDIT:"


def _sign_event(event: dict[str, Any], signing_key: bytes) -> str:
    """Generate HMAC-SHA256 signature for an audit event."""
    canonical = json.dumps(event, sort_keys=True, separators=(",", ":"))
    return hmac.new(signing_key, canonical.encode("utf-8"), hashlib.sha256).hexdigest()


class AuditTrail:
    """Writer for structured audit records.

    Args:
        stream: Destination stream (defaults to ``sys.stderr`` at write time)
        signing_key: Optional HMAC key; records are signed when set
    """

    def __init__(self, stream: Optional[TextIO] = None, signing_key: Optional[str] = None):
        self._stream = stream
        self._signing_key = signing_key.strip().encode("utf-8") if signing_key else b""

    def record(self, level: AuditLevel, action: AuditAction, **details: Any) -> dict[str, Any]:
        """Emit one audit record and return it.

        Write failures are reported on stderr but never raised: a broken
        audit sink must not fail the command being audited.
        """
        event: dict[str, Any] = {
            "timestamp": datetime.datetime.now(datetime.timezone.utc).isoformat(),
            "level": level,
            "action": action,
        }
        event.update({key: redact(value) if isinstance(value, str) else value for key, value in details.items()})

        if self._signing_key:
            event["signature"] = _sign_event(event, self._signing_key)

        stream = self._stream or sys.stderr
        try:
            stream.write(f"{AUDIT_PREFIX}{level.upper()}] {json.dumps(event, ensure_ascii=False)}\n")
            stream.flush()
        except (OSError, ValueError) as e:
            print(f"[audit] Warning: Failed to record {action} event: {e}", file=sys.stderr)
        return event

    def verify(self, event: dict[str, Any]) -> bool:
        """Check a previously emitted record against its signature."""
        if not self._signing_key:
            return False
        unsigned = dict(event)
        stored_sig = unsigned.pop("signature", "")
        if not stored_sig:
            return False
        return hmac.compare_digest(stored_sig, _sign_event(unsigned, self._signing_key))


def parse_audit_line(line: str) -> Optional[dict[str, Any]]:
    """Extract the JSON record from an ``[AUDIT:...]`` line, or None."""
    if not line.startswith(AUDIT_PREFIX):
        return None
    _, _, payload = line.partition("] ")
    try:
        event = json.loads(payload)
    except json.JSONDecodeError:
        return None
    return event if isinstance(event, dict) else None
