"""Navigation route to module key resolution."""

import logging
import re
from typing import Dict, Optional

from access_control.auth.modules import ModuleCatalog, normalize_module_key
from access_control.auth.snapshot import AccessSnapshot
from access_control.auth.visibility import VisibilityResolver

logger = logging.getLogger(__name__)

DASHBOARD_ROOT = "/dashboard"

ROUTE_MODULE_MAP: Dict[str, str] = {
    "/dashboard": "DASHBOARD",
    "/dashboard/solicitudes": "SOLICITUDES",
    "/dashboard/surtido": "SURTIDO",
    "/dashboard/entradas": "ENTRADAS",
    "/dashboard/salidas": "SALIDAS",
    "/dashboard/reportes": "REPORTES",
    "/dashboard/reportes/inventario": "REPORTES_INVENTARIO",
    "/dashboard/reportes/salidas-cliente": "REPORTES_SALIDAS_CLIENTE",
    "/dashboard/stock-fijo": "STOCK_FIJO",
    "/dashboard/inventarios": "INVENTARIOS_FISICOS",
    "/dashboard/productos": "CATALOGOS_PRODUCTOS",
    "/dashboard/categorias": "CATALOGOS_CATEGORIAS",
    "/dashboard/clientes": "CATALOGOS_CLIENTES",
    "/dashboard/proveedores": "CATALOGOS_PROVEEDORES",
    "/dashboard/empleados": "CATALOGOS_EMPLEADOS",
    "/dashboard/catalogos/tipos-entrada": "CATALOGOS_TIPOS_ENTRADA",
    "/dashboard/catalogos/tipos-salida": "CATALOGOS_TIPOS_SALIDA",
    "/dashboard/almacenes": "CATALOGOS_ALMACENES",
    "/dashboard/usuarios": "AJUSTES_USUARIOS",
    "/dashboard/usuarios/rbac": "AJUSTES_RBAC",
    "/dashboard/auditoria": "AJUSTES_AUDITORIA",
    "/dashboard/ajustes/catalogos": "GESTION_CATALOGOS",
    "/dashboard/ajustes/generador-reportes": "GESTION_REPORTES",
    "/dashboard/ajustes/entidades": "AJUSTES_ENTIDAD",
    "/dashboard/ajustes/respaldos": "GESTION_RESPALDOS",
}

# Settings pages whose module key does not follow the AJUSTES_<SEGMENT> pattern
AJUSTES_SEGMENT_MAP: Dict[str, str] = {
    "respaldos": "GESTION_RESPALDOS",
    "generador-reportes": "GESTION_REPORTES",
    "catalogos": "GESTION_CATALOGOS",
}

GROUP_PREFIXES: Dict[str, str] = {
    "reportes": "REPORTES_",
    "catalogos": "CATALOGOS_",
    "ajustes": "AJUSTES_",
}


def normalize_route(route_path: Optional[str]) -> str:
    path = (route_path or "").split("?", 1)[0].split("#", 1)[0]
    if not path or path == "/":
        return DASHBOARD_ROOT
    path = re.sub(r"/+", "/", path)
    if len(path) > 1 and path.endswith("/"):
        path = path[:-1]
    return path


def resolve_module_from_route(route_path: Optional[str], catalog: ModuleCatalog) -> Optional[str]:
    """Module key guarding a navigation path, or None when no module applies.

    Tries an exact match, then the longest mapped prefix, then segment
    heuristics (``/dashboard/<module>``, ``/dashboard/reportes/<x>`` and
    friends). Results are only returned when the key is in ``catalog``.
    """
    path = normalize_route(route_path)
    if path != DASHBOARD_ROOT and not path.startswith(DASHBOARD_ROOT + "/"):
        return None

    if path == DASHBOARD_ROOT:
        return "DASHBOARD" if "DASHBOARD" in catalog else None

    # Longest prefix first; the bare dashboard root is not a prefix match
    segments = [segment for segment in path.split("/") if segment]
    for end in range(len(segments), 1, -1):
        candidate = "/" + "/".join(segments[:end])
        module_key = ROUTE_MODULE_MAP.get(candidate)
        if module_key and module_key in catalog:
            return module_key

    if len(segments) < 2:
        return None

    # Grouped sections first so /catalogos/clientes is not swallowed by CATALOGOS
    group = segments[1].lower()
    if group in GROUP_PREFIXES and len(segments) > 2:
        if group == "ajustes" and segments[2] in AJUSTES_SEGMENT_MAP:
            module_key = AJUSTES_SEGMENT_MAP[segments[2]]
        else:
            module_key = GROUP_PREFIXES[group] + normalize_module_key(segments[2])
        if module_key in catalog:
            return module_key

    base = normalize_module_key(segments[1])
    if base in catalog:
        return base

    return None


def can_access_route(
    snapshot: AccessSnapshot,
    route_path: Optional[str],
    catalog: ModuleCatalog,
    resolver: Optional[VisibilityResolver] = None,
) -> bool:
    """Navigation access for a route; routes that map to no module stay open"""
    if snapshot.has_system_role:
        return True

    module_key = resolve_module_from_route(route_path, catalog)
    if module_key is None:
        logger.debug(f"No module mapped for route {route_path!r}, allowing")
        return True

    resolver = resolver or VisibilityResolver(snapshot, catalog)
    return resolver.is_visible(module_key)
