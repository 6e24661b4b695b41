"""Module visibility resolution.

Each role is resolved through a chain of strategies; the first strategy with
an opinion wins for that role, and roles are OR-combined. Visibility is not a
security boundary, so every ambiguity resolves to visible.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Optional, Sequence

from access_control.auth.modules import ModuleCatalog, normalize_module_key
from access_control.auth.snapshot import AccessSnapshot, RoleInfo

logger = logging.getLogger(__name__)


class VisibilitySource(str, Enum):
    SYSTEM = "system"
    USER_OVERRIDE = "user_override"
    V2 = "v2"
    LEGACY = "legacy"
    DEFAULT = "default"
    NO_ROLES = "no_roles"
    UNKNOWN_MODULE = "unknown_module"


@dataclass(frozen=True)
class VisibilityDecision:
    visible: bool
    source: VisibilitySource
    role_id: Optional[int] = None


class VisibilityStrategy:
    source: VisibilitySource

    def decide(self, snapshot: AccessSnapshot, role: RoleInfo, module_key: str) -> Optional[bool]:
        """Return the role's answer, or None to defer to the next strategy"""
        raise NotImplementedError


class SystemRoleStrategy(VisibilityStrategy):
    source = VisibilitySource.SYSTEM

    def decide(self, snapshot, role, module_key):
        return True if role.is_system_role else None


class UserOverrideStrategy(VisibilityStrategy):
    source = VisibilitySource.USER_OVERRIDE

    def decide(self, snapshot, role, module_key):
        if snapshot.user_id is None:
            return None
        return snapshot.user_overrides.get((role.id, module_key))


class ModuleVisibilityStrategy(VisibilityStrategy):
    source = VisibilitySource.V2

    def decide(self, snapshot, role, module_key):
        return snapshot.visibility.get((role.id, module_key))


class LegacyGrantStrategy(VisibilityStrategy):
    """Reads the grant on the module's read permission as a visibility flag"""

    source = VisibilitySource.LEGACY

    def __init__(self, action: str = "LEER"):
        self.action = action

    def decide(self, snapshot, role, module_key):
        permission = snapshot.permission(module_key, self.action)
        if permission is None:
            return None
        return snapshot.grants.get((role.id, permission.id))


def default_strategies(legacy_action: str = "LEER") -> Sequence[VisibilityStrategy]:
    return (
        SystemRoleStrategy(),
        UserOverrideStrategy(),
        ModuleVisibilityStrategy(),
        LegacyGrantStrategy(legacy_action),
    )


class VisibilityResolver:
    def __init__(
        self,
        snapshot: AccessSnapshot,
        catalog: Optional[ModuleCatalog] = None,
        strategies: Optional[Sequence[VisibilityStrategy]] = None,
    ):
        self.snapshot = snapshot
        self.catalog = catalog
        self.strategies = tuple(strategies) if strategies is not None else tuple(default_strategies())

    def resolve_for_role(self, role: RoleInfo, module_key: str) -> VisibilityDecision:
        for strategy in self.strategies:
            visible = strategy.decide(self.snapshot, role, module_key)
            if visible is not None:
                return VisibilityDecision(bool(visible), strategy.source, role.id)
        return VisibilityDecision(True, VisibilitySource.DEFAULT, role.id)

    def explain(self, module: str) -> VisibilityDecision:
        module_key = normalize_module_key(module)

        if self.catalog is not None and module_key not in self.catalog:
            return VisibilityDecision(True, VisibilitySource.UNKNOWN_MODULE)

        roles = self.snapshot.active_roles
        if not roles:
            return VisibilityDecision(False, VisibilitySource.NO_ROLES)

        hidden: Optional[VisibilityDecision] = None
        for role in roles:
            decision = self.resolve_for_role(role, module_key)
            if decision.visible:
                return decision
            hidden = hidden or decision

        logger.debug(f"Module {module_key} hidden ({hidden.source.value}, role {hidden.role_id})")
        return hidden

    def is_visible(self, module: str) -> bool:
        return self.explain(module).visible

    def visibility_map(self, catalog: Optional[ModuleCatalog] = None) -> Dict[str, bool]:
        catalog = catalog or self.catalog
        if catalog is None:
            raise ValueError("A module catalog is required to build a visibility map")
        return {key: self.explain(key).visible for key in catalog.keys}

    def explain_map(self, catalog: Optional[ModuleCatalog] = None) -> Dict[str, VisibilityDecision]:
        catalog = catalog or self.catalog
        if catalog is None:
            raise ValueError("A module catalog is required to explain visibility")
        return {key: self.explain(key) for key in catalog.keys}


def is_visible(
    snapshot: AccessSnapshot,
    module: str,
    catalog: Optional[ModuleCatalog] = None,
    strategies: Optional[Sequence[VisibilityStrategy]] = None,
) -> bool:
    return VisibilityResolver(snapshot, catalog, strategies).is_visible(module)


def visibility_map(
    snapshot: AccessSnapshot,
    catalog: ModuleCatalog,
    strategies: Optional[Sequence[VisibilityStrategy]] = None,
) -> Dict[str, bool]:
    return VisibilityResolver(snapshot, catalog, strategies).visibility_map()


def explain_visibility(
    snapshot: AccessSnapshot,
    catalog: ModuleCatalog,
    strategies: Optional[Sequence[VisibilityStrategy]] = None,
) -> Dict[str, VisibilityDecision]:
    return VisibilityResolver(snapshot, catalog, strategies).explain_map()
