"""
Structured audit logging for destructive and administrative operations.

Every retention deletion and every retention-setting change is written to
the dedicated 'audit' logger as one JSON object per line. The request id of
the HTTP request that triggered the operation (if any) is carried through
async calls with a ContextVar.
"""

import json
import logging
from contextvars import ContextVar
from typing import Any, Dict, Optional

from utils.timeutils import utcnow


# Context variable for tracking request_id across async calls
_request_id_context: ContextVar[Optional[str]] = ContextVar(
    'request_id', default=None
)


class AuditLogger:
    """
    Structured audit logger.

    All events go to the 'audit' logger in JSON format with a consistent
    envelope: timestamp, action, actor, resource, resource_id, status,
    request_id, details.
    """

    def __init__(self):
        self.logger = logging.getLogger('audit')

    def set_request_id(self, request_id: Optional[str]) -> None:
        """Set the request_id for the current context."""
        _request_id_context.set(request_id)

    def get_request_id(self) -> Optional[str]:
        return _request_id_context.get()

    def log(
        self,
        action: str,
        actor: str,
        resource: str,
        resource_id: str,
        status: str,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        """
        Log a structured audit event.

        Args:
            action: Type of action performed (e.g., 'DELETE', 'UPDATE')
            actor: Component or user performing the action
            resource: Type of resource affected (e.g., 'ProbeResult')
            resource_id: Identifier of the affected resource, or 'all'
            status: Result status (e.g., 'success', 'failure')
            details: Optional dict of additional context
        """
        event = {
            'timestamp': utcnow().isoformat() + 'Z',
            'action': action,
            'actor': actor,
            'resource': resource,
            'resource_id': resource_id,
            'status': status,
            'request_id': self.get_request_id(),
            'details': details or {},
        }
        self.logger.info(json.dumps(event, default=str))

    def log_retention(
        self,
        step: str,
        target_id: Optional[int],
        deleted: int,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        """
        Log probe results removed by the retention sweep.

        Args:
            step: Sweep step ('tiering', 'cutoff', 'cap')
            target_id: Affected target, or None for cross-target deletions
            deleted: Number of rows removed
            details: Optional step-specific context (windows, limits)
        """
        self.log(
            action='DELETE',
            actor='retention',
            resource='ProbeResult',
            resource_id=str(target_id) if target_id is not None else 'all',
            status='success',
            details={'step': step, 'deleted': deleted, **(details or {})},
        )

    def log_settings_change(self, setting: str, old_value: Any, new_value: Any) -> None:
        """Log an admin setting update."""
        self.log(
            action='UPDATE',
            actor='admin',
            resource='AdminSettings',
            resource_id=setting,
            status='success',
            details={'old': old_value, 'new': new_value},
        )


# Global audit logger instance for convenient import
audit = AuditLogger()
