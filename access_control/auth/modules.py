"""Module catalog for the RBAC engine.

The catalog is the single source of truth for which module keys exist. It
is an immutable value handed to services and API dependencies, so tests can
inject a smaller catalog instead of the full navigation set.

Module keys are canonicalized with ``normalize_module_key`` before every
lookup and write: ``"stock-fijo "`` and ``"STOCK_FIJO"`` are the same key.
"""

from __future__ import annotations

import re
import unicodedata
from dataclasses import dataclass
from types import MappingProxyType
from typing import Dict, Iterable, Iterator, List, Optional, Tuple

from access_control.core.exceptions import MODULE_NOT_FOUND, NotFoundError

_NON_ALNUM = re.compile(r"[^A-Z0-9]+")


def normalize_module_key(key: Optional[str]) -> str:
    """Canonical form of a module key.

    Accents are folded to ASCII, the key is upper-cased, every run of
    non-alphanumeric characters becomes a single ``_`` and leading/trailing
    underscores are dropped. ``None`` normalizes to ``""``.
    """
    if key is None:
        return ""
    folded = unicodedata.normalize("NFKD", str(key)).encode("ascii", "ignore").decode("ascii")
    return _NON_ALNUM.sub("_", folded.strip().upper()).strip("_")


# Actions share the module key format (LEER, CREAR, ADMINISTRAR_PERMISOS ...)
normalize_action = normalize_module_key


@dataclass(frozen=True)
class ModuleDefinition:
    key: str
    title: str
    category: str = "main"


class ModuleCatalog:
    """Immutable, ordered set of known modules."""

    def __init__(self, modules: Iterable[ModuleDefinition]):
        by_key: Dict[str, ModuleDefinition] = {}
        for module in modules:
            key = normalize_module_key(module.key)
            if not key:
                raise ValueError(f"Invalid module key: {module.key!r}")
            if key in by_key:
                raise ValueError(f"Duplicate module key: {key}")
            by_key[key] = ModuleDefinition(key=key, title=module.title, category=module.category)
        self._modules: Tuple[ModuleDefinition, ...] = tuple(by_key.values())
        self._by_key = MappingProxyType(by_key)

    @classmethod
    def from_keys(cls, keys: Iterable[str]) -> "ModuleCatalog":
        return cls(ModuleDefinition(key=key, title=key) for key in keys)

    @property
    def keys(self) -> Tuple[str, ...]:
        return tuple(module.key for module in self._modules)

    @property
    def modules(self) -> Tuple[ModuleDefinition, ...]:
        return self._modules

    def __contains__(self, key: object) -> bool:
        return isinstance(key, str) and normalize_module_key(key) in self._by_key

    def __iter__(self) -> Iterator[str]:
        return iter(self.keys)

    def __len__(self) -> int:
        return len(self._modules)

    def is_valid(self, key: Optional[str]) -> bool:
        return normalize_module_key(key) in self._by_key

    def get(self, key: Optional[str]) -> Optional[ModuleDefinition]:
        return self._by_key.get(normalize_module_key(key))

    def require(self, key: Optional[str]) -> str:
        """Normalized key, or NotFoundError naming the offending key"""
        normalized = normalize_module_key(key)
        if normalized not in self._by_key:
            raise NotFoundError(
                MODULE_NOT_FOUND,
                f"Module '{key}' is not a known module",
                module_key=key,
            )
        return normalized

    def title(self, key: str) -> str:
        module = self.get(key)
        return module.title if module else key

    def by_category(self, category: str) -> List[ModuleDefinition]:
        return [m for m in self._modules if m.category == category]


SYSTEM_MODULES: Tuple[ModuleDefinition, ...] = (
    # Main menu
    ModuleDefinition("DASHBOARD", "Dashboard", "main"),
    ModuleDefinition("SOLICITUDES", "Solicitudes", "main"),
    ModuleDefinition("SURTIDO", "Surtido", "main"),
    ModuleDefinition("ENTRADAS", "Entradas", "main"),
    ModuleDefinition("SALIDAS", "Salidas", "main"),
    ModuleDefinition("REPORTES", "Reportes (Menú)", "main"),
    ModuleDefinition("STOCK_FIJO", "Stock Fijo", "main"),
    ModuleDefinition("INVENTARIOS_FISICOS", "Inventarios Físicos", "main"),
    ModuleDefinition("CATALOGOS", "Catálogos (Menú)", "main"),
    ModuleDefinition("AJUSTES", "Ajustes (Menú)", "main"),

    # Reports submenu
    ModuleDefinition("REPORTES_INVENTARIO", "Inventario", "reportes"),
    ModuleDefinition("REPORTES_ENTRADAS_CLIENTE", "Entradas por Proveedor", "reportes"),
    ModuleDefinition("REPORTES_SALIDAS_CLIENTE", "Salidas por Cliente", "reportes"),
    ModuleDefinition("REPORTES_ROTACION_PRODUCTOS", "Rotación de Productos", "reportes"),

    # Catalogs submenu
    ModuleDefinition("CATALOGOS_PRODUCTOS", "Productos", "catalogos"),
    ModuleDefinition("CATALOGOS_CATEGORIAS", "Categorías", "catalogos"),
    ModuleDefinition("CATALOGOS_CLIENTES", "Clientes", "catalogos"),
    ModuleDefinition("CATALOGOS_PROVEEDORES", "Proveedores", "catalogos"),
    ModuleDefinition("CATALOGOS_EMPLEADOS", "Empleados", "catalogos"),
    ModuleDefinition("CATALOGOS_TIPOS_ENTRADA", "Tipos de Entrada", "catalogos"),
    ModuleDefinition("CATALOGOS_TIPOS_SALIDA", "Tipos de Salida", "catalogos"),
    ModuleDefinition("CATALOGOS_ALMACENES", "Almacenes", "catalogos"),

    # Settings submenu
    ModuleDefinition("AJUSTES_USUARIOS", "Usuarios", "ajustes"),
    ModuleDefinition("AJUSTES_RBAC", "Roles y Permisos (RBAC)", "ajustes"),
    ModuleDefinition("AJUSTES_AUDITORIA", "Auditoría", "ajustes"),
    ModuleDefinition("GESTION_CATALOGOS", "Gestión de Catálogos", "ajustes"),
    ModuleDefinition("GESTION_REPORTES", "Gestión de Reportes", "ajustes"),
    ModuleDefinition("AJUSTES_ENTIDAD", "Entidades", "ajustes"),
    ModuleDefinition("GESTION_RESPALDOS", "Gestión de Respaldos", "ajustes"),

    # Backend only, never rendered in the sidebar
    ModuleDefinition("INVENTARIO", "Inventario (Backend)", "backend"),
)

default_catalog = ModuleCatalog(SYSTEM_MODULES)


def get_module_catalog() -> ModuleCatalog:
    """FastAPI dependency; override in tests to inject a smaller catalog"""
    return default_catalog
