"""
RBAC seed data
- Permission catalog derived from the module catalog
- Base roles (system superuser, administrator, operator)
"""

from typing import Dict, List

from access_control.auth.modules import ModuleCatalog, default_catalog

CRUD_ACTIONS = ("LEER", "CREAR", "ACTUALIZAR", "ELIMINAR")

# Extra actions on top of CRUD, keyed by module key prefix or exact key
EXTRA_ACTIONS: Dict[str, tuple] = {
    "REPORTES_": ("EXPORTAR",),
    "AJUSTES_RBAC": ("ADMINISTRAR_PERMISOS",),
    "AJUSTES_USUARIOS": ("ADMINISTRAR_PERMISOS",),
}

ACTION_LABELS = {
    "LEER": "View",
    "CREAR": "Create",
    "ACTUALIZAR": "Update",
    "ELIMINAR": "Delete",
    "EXPORTAR": "Export",
    "ADMINISTRAR_PERMISOS": "Administer permissions for",
}

ROLES_SEED = [
    {
        "name": "UNIDADC",
        "description": "Hidden system superuser role; bypasses every check",
        "is_system_role": True,
    },
    {
        "name": "ADMINISTRADOR",
        "description": "Full administrative access",
        "is_system_role": False,
    },
    {
        "name": "OPERADOR",
        "description": "Warehouse operator",
        "is_system_role": False,
    },
]


def actions_for_module(module_key: str) -> tuple:
    actions = list(CRUD_ACTIONS)
    for key, extra in EXTRA_ACTIONS.items():
        matches = module_key.startswith(key) if key.endswith("_") else module_key == key
        if matches:
            actions.extend(a for a in extra if a not in actions)
    return tuple(actions)


def build_permissions_seed(catalog: ModuleCatalog = default_catalog) -> List[dict]:
    seed = []
    for module in catalog.modules:
        for action in actions_for_module(module.key):
            seed.append({
                "name": f"{module.key}:{action}",
                "description": f"{ACTION_LABELS.get(action, action.title())} {module.title}",
                "module": module.key,
                "action": action,
            })
    return seed

