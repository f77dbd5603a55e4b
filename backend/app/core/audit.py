"""
Audit logging for custody and security events.

One JSON object per line on the "audit" logger: registrations, status
transitions, deletions, alerts, logins, role assignments and denials.
Never includes passwords or tokens.
"""
import logging
import json
from datetime import datetime, timezone
from typing import Any, Optional, Dict

# Separate logger for audit events (can be shipped to centralized logging)
audit_logger = logging.getLogger("audit")


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class AuditLog:
    """Central audit logging for custody-critical events."""

    @staticmethod
    def log_authentication(
        action: str,  # "login", "logout", "register", "failed_login"
        email: str,
        ip_address: str,
        success: bool,
        reason: str = "",
    ):
        """
        Usage:
            AuditLog.log_authentication("login", "user@example.com", "192.168.1.1", True)
        """
        log_entry = {
            "timestamp": _now(),
            "event_type": f"auth.{action}",
            "email": email,
            "ip_address": ip_address,
            "success": success,
        }

        if reason and not success:
            log_entry["reason"] = reason

        audit_logger.info(json.dumps(log_entry))

    @staticmethod
    def log_action(
        action: str,  # "register", "transition", "delete", "create", "resolve"
        resource_type: str,  # "drug", "alert"
        resource_id: int,
        user_id: Optional[int] = None,
        role: Optional[str] = None,
        changes: Optional[Dict[str, Any]] = None,
    ):
        """
        Log a custody-relevant change: who (user + acting role), what, when.

        Usage:
            AuditLog.log_action("transition", "drug", 12, user_id=3, role="pharmacy",
                                changes={"from": "distributed", "to": "in_pharmacy"})
        """
        log_entry = {
            "timestamp": _now(),
            "event_type": f"{resource_type}.{action}",
            "user_id": user_id,
            "role": role,
            "resource_id": resource_id,
        }

        if changes:
            log_entry["changes"] = changes

        audit_logger.info(json.dumps(log_entry, default=str))

    @staticmethod
    def log_access_denied(
        action: str,
        resource_type: str,
        resource_id: Optional[int],
        user_id: Optional[int],
        reason: str,
    ):
        """
        Log denied attempts, e.g. a distributor trying to mark a drug sold
        or a pending account calling a privileged route.
        """
        log_entry = {
            "timestamp": _now(),
            "event_severity": "WARNING",
            "event_type": "access_denied",
            "action": action,
            "resource_type": resource_type,
            "resource_id": resource_id,
            "user_id": user_id,
            "reason": reason,
        }

        audit_logger.warning(json.dumps(log_entry))

    @staticmethod
    def log_permission_change(
        user_id: int,
        granted_by: int,
        role: Optional[str],
        previous_role: Optional[str],
    ):
        """
        Log role assignments. `role=None` puts the account back to pending.
        """
        log_entry = {
            "timestamp": _now(),
            "event_type": "permissions.role_changed",
            "user_id": user_id,
            "granted_by": granted_by,
            "role": role,
            "previous_role": previous_role,
        }

        audit_logger.info(json.dumps(log_entry))
