import logging
from typing import Any, Optional

audit_logger = logging.getLogger("audit")


def log_user_action(
    user_id: Optional[int],
    action: str,
    entity: str,
    entity_id: Any = None,
    **details: Any,
) -> None:
    """Emit an RBAC mutation event for the external audit trail"""
    extra = " ".join(f"{key}={value}" for key, value in details.items())
    audit_logger.info(
        f"User {user_id if user_id is not None else 'SYSTEM'} performed {action} "
        f"on {entity} {entity_id if entity_id is not None else ''} {extra}".rstrip()
    )
