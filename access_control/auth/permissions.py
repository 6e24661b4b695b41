import logging
from typing import Dict, Iterable, List, Optional, Tuple

from access_control.auth.modules import normalize_action, normalize_module_key
from access_control.auth.snapshot import AccessSnapshot, PermissionInfo
from access_control.core.exceptions import PermissionDeniedError

logger = logging.getLogger(__name__)


class PermissionChecker:
    """
    Check a role set's permissions against a loaded access snapshot
    """

    def __init__(self, snapshot: AccessSnapshot):
        self.snapshot = snapshot

    def can(self, module: str, action: str) -> bool:
        """
        Check if the role set may perform action on module

        Examples:
            can("salidas", "crear")  # same as can("SALIDAS", "CREAR")
        """
        module_key = normalize_module_key(module)
        action_key = normalize_action(action)
        permission_key = f"{module_key}:{action_key}"

        # Unknown or inactive permissions fail closed, even for system roles
        permission = self.snapshot.permission(module_key, action_key)
        if permission is None:
            logger.debug(f"Permission denied: {permission_key} (not in catalog)")
            return False

        roles = self.snapshot.active_roles
        if not roles:
            logger.debug(f"Permission denied: {permission_key} (no active roles)")
            return False

        for role in roles:
            if role.is_system_role:
                logger.debug(f"Permission granted: {permission_key} (via system role {role.name})")
                return True

        for role in roles:
            if self.snapshot.grants.get((role.id, permission.id), False):
                logger.debug(f"Permission granted: {permission_key} (via role {role.name})")
                return True

        logger.debug(f"Permission denied: {permission_key}")
        return False

    def cannot(self, module: str, action: str) -> bool:
        return not self.can(module, action)

    def require(self, module: str, action: str):
        """
        Require permission or raise PermissionDeniedError (403)
        """
        if self.cannot(module, action):
            logger.warning(
                f"Permission check failed: {normalize_module_key(module)}:{normalize_action(action)}"
            )
            raise PermissionDeniedError(normalize_module_key(module), normalize_action(action))

    def has_any(self, *permission_tuples) -> bool:
        """
        Check if the role set has any of the given permissions (OR logic)
        """
        for module, action in permission_tuples:
            if self.can(module, action):
                return True
        return False

    def has_all(self, *permission_tuples) -> bool:
        """
        Check if the role set has all of the given permissions (AND logic)
        """
        for module, action in permission_tuples:
            if self.cannot(module, action):
                return False
        return True

    def check_many(self, pairs: Iterable[Tuple[str, str]]) -> Dict[str, bool]:
        """
        Resolve a batch of (module, action) pairs, keyed by MODULE:ACTION
        """
        results: Dict[str, bool] = {}
        for module, action in pairs:
            results[format_permission_name(module, action)] = self.can(module, action)
        return results

    def effective_permissions(self) -> List[PermissionInfo]:
        """
        Active permissions the role set is allowed to exercise
        """
        permitted = [
            perm for perm in self.snapshot.active_permissions()
            if self.can(perm.module, perm.action)
        ]
        return sorted(permitted, key=lambda p: (p.module, p.action))

    def has_permission(self, permission_name: str) -> bool:
        """
        Check permission by full MODULE:ACTION name; malformed names are denied
        """
        try:
            module, action = parse_permission_name(permission_name)
        except ValueError:
            return False
        return self.can(module, action)


def is_permitted(snapshot: AccessSnapshot, module: str, action: str) -> bool:
    return PermissionChecker(snapshot).can(module, action)


def check_many(snapshot: AccessSnapshot, pairs: Iterable[Tuple[str, str]]) -> Dict[str, bool]:
    return PermissionChecker(snapshot).check_many(pairs)


def effective_permissions(snapshot: AccessSnapshot) -> List[PermissionInfo]:
    return PermissionChecker(snapshot).effective_permissions()


def parse_permission_name(permission_name: Optional[str]) -> Tuple[str, str]:
    """
    Parse a permission name into module and action
    """
    if not permission_name or ":" not in permission_name:
        raise ValueError(f"Invalid permission format: {permission_name}. Expected 'MODULE:ACTION'")

    module, action = permission_name.split(":", 1)
    if not module or not action:
        raise ValueError(f"Invalid permission format: {permission_name}. Expected 'MODULE:ACTION'")

    return normalize_module_key(module), normalize_action(action)


def format_permission_name(module: str, action: str) -> str:
    return f"{normalize_module_key(module)}:{normalize_action(action)}"
