"""Audit logging for controller changes.

One JSON line per create/update/delete the reconciler performs, written to
the ``aap_reconciler.audit`` logger. Secret fields are masked before they get
here (see Resource.redacted).
"""
import json
import logging
import os
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

audit_logger = logging.getLogger("aap_reconciler.audit")

DEFAULT_AUDIT_DIR = "~/.aap-reconciler"


def setup_audit_logging(log_dir: Optional[str] = None) -> Path:
    """Configure audit logging to a rotating file.

    Args:
        log_dir: Directory for audit logs. Defaults to ~/.aap-reconciler/

    Returns:
        Path of the audit log file
    """
    log_dir = os.path.expanduser(log_dir or DEFAULT_AUDIT_DIR)
    Path(log_dir).mkdir(parents=True, exist_ok=True)

    audit_file = Path(log_dir) / "audit.log"

    audit_logger.setLevel(logging.INFO)
    audit_logger.handlers.clear()

    handler = RotatingFileHandler(
        audit_file,
        maxBytes=10 * 1024 * 1024,  # 10MB
        backupCount=10,
        encoding="utf-8",
    )
    # JSON lines, one record per line
    handler.setFormatter(logging.Formatter("%(message)s"))
    audit_logger.addHandler(handler)
    audit_logger.propagate = False

    return audit_file


@dataclass
class ChangeRecord:
    """Record of one controller change."""
    timestamp: str
    resource: str
    operation: str  # create, update, delete
    object_id: Optional[int]
    success: bool
    parameters: dict = field(default_factory=dict)
    error: Optional[str] = None
    target: str = ""

    def to_json(self) -> str:
        return json.dumps(asdict(self), default=str)

    @classmethod
    def from_json(cls, json_str: str) -> "ChangeRecord":
        return cls(**json.loads(json_str))


class ChangeTracker:
    """Build and emit change records."""

    def __init__(self, target: str = ""):
        self.target = target
        self.records: list[ChangeRecord] = []

    def log_change(
        self,
        resource: str,
        operation: str,
        object_id: Optional[int],
        success: bool,
        parameters: Optional[dict] = None,
        error: Optional[str] = None,
    ) -> ChangeRecord:
        """Log a change and keep it on the tracker.

        Args:
            resource: Resource kind, e.g. "job template"
            operation: create, update or delete
            object_id: Controller id, if known
            success: Whether the controller accepted the change
            parameters: Redacted request body
            error: Error message if the change failed
        """
        record = ChangeRecord(
            timestamp=datetime.now(timezone.utc).isoformat(),
            resource=resource,
            operation=operation,
            object_id=object_id,
            success=success,
            parameters=parameters or {},
            error=error[:1000] if error else None,
            target=self.target,
        )
        self.records.append(record)
        audit_logger.info(record.to_json())
        return record


def get_recent_changes(
    log_file: Optional[str] = None,
    resource: Optional[str] = None,
    operation: Optional[str] = None,
    limit: int = 100,
) -> list[ChangeRecord]:
    """Read recent changes from the audit log, most recent first.

    Args:
        log_file: Path to audit log. Defaults to ~/.aap-reconciler/audit.log
        resource: Filter by resource kind
        operation: Filter by operation
        limit: Maximum number of records to return
    """
    if log_file is None:
        log_file = os.path.join(os.path.expanduser(DEFAULT_AUDIT_DIR), "audit.log")

    if not os.path.exists(log_file):
        return []

    records = []
    with open(log_file, "r", encoding="utf-8") as f:
        for line in f:
            line = line.strip()
            if not line:
                continue
            try:
                record = ChangeRecord.from_json(line)
            except (json.JSONDecodeError, TypeError):
                continue  # Skip malformed lines

            if resource and record.resource != resource:
                continue
            if operation and record.operation != operation:
                continue
            records.append(record)

    return list(reversed(records[-limit:]))
