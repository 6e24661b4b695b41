import pytest

from access_control.auth.modules import (
    ModuleCatalog,
    ModuleDefinition,
    SYSTEM_MODULES,
    default_catalog,
    normalize_action,
    normalize_module_key,
)
from access_control.core.exceptions import MODULE_NOT_FOUND, NotFoundError


class TestNormalizeModuleKey:

    @pytest.mark.parametrize("raw", ["stock-fijo ", "STOCK_FIJO", " Stock Fijo", "stock__fijo", "-stock-fijo-"])
    def test_variants_collapse_to_one_key(self, raw):
        assert normalize_module_key(raw) == "STOCK_FIJO"

    def test_accents_are_folded(self):
        assert normalize_module_key("catálogos-categorías") == "CATALOGOS_CATEGORIAS"

    def test_none_and_blank(self):
        assert normalize_module_key(None) == ""
        assert normalize_module_key("   ") == ""

    def test_actions_use_the_same_rules(self):
        assert normalize_action("administrar permisos") == "ADMINISTRAR_PERMISOS"
        assert normalize_action("leer") == "LEER"


class TestModuleCatalog:

    def test_default_catalog_has_every_navigation_module(self):
        assert len(default_catalog) == len(SYSTEM_MODULES) == 30
        assert "INVENTARIO" in default_catalog
        assert default_catalog.get("inventario").category == "backend"
        assert [m.key for m in default_catalog.by_category("reportes")] == [
            "REPORTES_INVENTARIO",
            "REPORTES_ENTRADAS_CLIENTE",
            "REPORTES_SALIDAS_CLIENTE",
            "REPORTES_ROTACION_PRODUCTOS",
        ]

    def test_lookup_normalizes(self):
        catalog = ModuleCatalog.from_keys(["STOCK_FIJO"])
        assert "stock-fijo " in catalog
        assert catalog.is_valid("Stock Fijo")
        assert catalog.require("stock-fijo") == "STOCK_FIJO"

    def test_require_names_the_unknown_key(self):
        catalog = ModuleCatalog.from_keys(["SALIDAS"])
        with pytest.raises(NotFoundError) as exc:
            catalog.require("NOPE")
        assert exc.value.status_code == 404
        assert exc.value.detail["code"] == MODULE_NOT_FOUND
        assert exc.value.detail["module_key"] == "NOPE"

    def test_duplicates_after_normalization_are_rejected(self):
        with pytest.raises(ValueError):
            ModuleCatalog([ModuleDefinition("stock-fijo", "a"), ModuleDefinition("STOCK_FIJO", "b")])

    def test_keys_keep_declaration_order(self):
        catalog = ModuleCatalog.from_keys(["b", "a", "c"])
        assert catalog.keys == ("B", "A", "C")
        assert list(catalog) == ["B", "A", "C"]
