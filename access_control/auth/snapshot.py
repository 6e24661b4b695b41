"""In-memory view of everything the resolution engine reads.

A snapshot is loaded once per request (see ``AccessRepository``) and then
queried any number of times without touching the store.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, FrozenSet, Iterable, Optional, Tuple

from access_control.auth.modules import normalize_action, normalize_module_key


@dataclass(frozen=True)
class RoleInfo:
    id: int
    name: str
    is_system_role: bool = False
    is_active: bool = True


@dataclass(frozen=True)
class PermissionInfo:
    id: int
    module: str
    action: str
    is_active: bool = True

    @property
    def name(self) -> str:
        return f"{self.module}:{self.action}"


@dataclass(frozen=True)
class AccessSnapshot:
    roles: Tuple[RoleInfo, ...] = ()
    # (MODULE, ACTION) -> permission, inactive ones included so lookups can fail closed
    permissions: Dict[Tuple[str, str], PermissionInfo] = field(default_factory=dict)
    # (role_id, permission_id) -> granted
    grants: Dict[Tuple[int, int], bool] = field(default_factory=dict)
    # (role_id, MODULE) -> visible, role cells only
    visibility: Dict[Tuple[int, str], bool] = field(default_factory=dict)
    # (role_id, MODULE) -> visible, rows scoped to ``user_id``
    user_overrides: Dict[Tuple[int, str], bool] = field(default_factory=dict)
    user_id: Optional[int] = None

    @classmethod
    def build(
        cls,
        roles: Iterable[RoleInfo],
        permissions: Iterable[PermissionInfo] = (),
        grants: Optional[Dict[Tuple[int, int], bool]] = None,
        visibility: Optional[Dict[Tuple[int, str], bool]] = None,
        user_overrides: Optional[Dict[Tuple[int, str], bool]] = None,
        user_id: Optional[int] = None,
    ) -> "AccessSnapshot":
        """Build a snapshot, normalizing every module and action key"""
        return cls(
            roles=tuple(roles),
            permissions={
                (normalize_module_key(p.module), normalize_action(p.action)): PermissionInfo(
                    id=p.id,
                    module=normalize_module_key(p.module),
                    action=normalize_action(p.action),
                    is_active=p.is_active,
                )
                for p in permissions
            },
            grants=dict(grants or {}),
            visibility={
                (role_id, normalize_module_key(module)): visible
                for (role_id, module), visible in (visibility or {}).items()
            },
            user_overrides={
                (role_id, normalize_module_key(module)): visible
                for (role_id, module), visible in (user_overrides or {}).items()
            },
            user_id=user_id,
        )

    @property
    def active_roles(self) -> Tuple[RoleInfo, ...]:
        return tuple(role for role in self.roles if role.is_active)

    @property
    def role_ids(self) -> FrozenSet[int]:
        return frozenset(role.id for role in self.active_roles)

    @property
    def has_system_role(self) -> bool:
        return any(role.is_system_role for role in self.active_roles)

    def permission(self, module: str, action: str) -> Optional[PermissionInfo]:
        """Active permission for the pair, or None"""
        perm = self.permissions.get((normalize_module_key(module), normalize_action(action)))
        if perm is None or not perm.is_active:
            return None
        return perm

    def active_permissions(self) -> Tuple[PermissionInfo, ...]:
        return tuple(p for p in self.permissions.values() if p.is_active)
