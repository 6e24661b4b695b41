import pytest

from access_control.auth.modules import ModuleCatalog, default_catalog
from access_control.auth.routes import can_access_route, normalize_route, resolve_module_from_route
from access_control.auth.snapshot import AccessSnapshot, RoleInfo


class TestResolveModuleFromRoute:

    @pytest.mark.parametrize(
        "path, expected",
        [
            ("/dashboard", "DASHBOARD"),
            ("/", "DASHBOARD"),
            ("/dashboard/stock-fijo", "STOCK_FIJO"),
            ("/dashboard/stock-fijo/", "STOCK_FIJO"),
            ("/dashboard/salidas/nueva?folio=12", "SALIDAS"),
            ("/dashboard/usuarios/rbac", "AJUSTES_RBAC"),
            ("/dashboard/usuarios/42", "AJUSTES_USUARIOS"),
            ("/dashboard/catalogos/tipos-salida", "CATALOGOS_TIPOS_SALIDA"),
            ("/dashboard/catalogos/clientes", "CATALOGOS_CLIENTES"),
            ("/dashboard/reportes/inventario/detalle", "REPORTES_INVENTARIO"),
            ("/dashboard/ajustes/respaldos", "GESTION_RESPALDOS"),
            ("/dashboard/ajustes/usuarios", "AJUSTES_USUARIOS"),
            ("//dashboard//entradas", "ENTRADAS"),
        ],
    )
    def test_known_routes(self, path, expected):
        assert resolve_module_from_route(path, default_catalog) == expected

    @pytest.mark.parametrize("path", ["/login", "/dashboard/perfil", "/dashboardx", "/api/v1/rbac"])
    def test_unmapped_routes(self, path):
        assert resolve_module_from_route(path, default_catalog) is None

    def test_results_are_limited_to_the_catalog(self):
        catalog = ModuleCatalog.from_keys(["SALIDAS"])
        assert resolve_module_from_route("/dashboard/stock-fijo", catalog) is None
        assert resolve_module_from_route("/dashboard/salidas", catalog) == "SALIDAS"

    def test_normalize_route(self):
        assert normalize_route(None) == "/dashboard"
        assert normalize_route("/dashboard/salidas/?x=1") == "/dashboard/salidas"


class TestCanAccessRoute:

    def test_hidden_module_blocks_route(self):
        snap = AccessSnapshot.build(roles=[RoleInfo(2, "OPERADOR")], visibility={(2, "SALIDAS"): False})
        assert can_access_route(snap, "/dashboard/salidas", default_catalog) is False
        assert can_access_route(snap, "/dashboard/entradas", default_catalog) is True

    def test_unmapped_route_is_allowed(self):
        snap = AccessSnapshot.build(roles=[RoleInfo(2, "OPERADOR")])
        assert can_access_route(snap, "/dashboard/perfil", default_catalog) is True

    def test_system_role_reaches_everything(self):
        snap = AccessSnapshot.build(
            roles=[RoleInfo(1, "UNIDADC", is_system_role=True)],
            visibility={(1, "SALIDAS"): False},
        )
        assert can_access_route(snap, "/dashboard/salidas", default_catalog) is True
