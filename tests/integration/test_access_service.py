import pytest
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from access_control.auth.visibility import VisibilitySource
from access_control.core.exceptions import InvalidStateError, NotFoundError, StoreError
from access_control.models.auth.module_visibility import ModuleVisibility
from access_control.services.auth import visibility_service as visibility_module
from access_control.services.auth.access_service import AccessService
from access_control.services.auth.visibility_service import VisibilityService


class TestPermissionResolution:
    """Grant lookups against the database"""

    async def test_granted_permission(self, session, catalog, factory, permissions):
        operador = await factory.role("OPERADOR")
        await factory.grant(operador, permissions["SALIDAS:CREAR"])

        access = AccessService(session, catalog)

        assert await access.is_permitted([operador.id], "SALIDAS", "CREAR") is True
        assert await access.is_permitted([operador.id], "SALIDAS", "ELIMINAR") is False

    async def test_revoked_row_is_denied(self, session, catalog, factory, permissions):
        operador = await factory.role("OPERADOR")
        await factory.grant(operador, permissions["SALIDAS:CREAR"], granted=False)

        access = AccessService(session, catalog)

        assert await access.is_permitted([operador.id], "SALIDAS", "CREAR") is False

    async def test_roles_are_or_combined(self, session, catalog, factory, permissions):
        reader = await factory.role("LECTOR")
        writer = await factory.role("ESCRITOR")
        await factory.grant(reader, permissions["SALIDAS:LEER"])
        await factory.grant(writer, permissions["SALIDAS:CREAR"])

        access = AccessService(session, catalog)
        results = await access.check_many(
            [("SALIDAS", "LEER"), ("SALIDAS", "CREAR"), ("SALIDAS", "ELIMINAR")],
            role_ids=[reader.id, writer.id],
        )

        assert results == {"SALIDAS:LEER": True, "SALIDAS:CREAR": True, "SALIDAS:ELIMINAR": False}

    async def test_inputs_are_normalized(self, session, catalog, factory, permissions):
        operador = await factory.role("OPERADOR")
        await factory.grant(operador, permissions["STOCK_FIJO:LEER"])

        access = AccessService(session, catalog)

        assert await access.is_permitted([operador.id], "stock-fijo ", " leer") is True

    async def test_system_role_bypasses_grants(self, session, catalog, factory, permissions):
        unidadc = await factory.role("UNIDADC", is_system_role=True)

        access = AccessService(session, catalog)

        assert await access.is_permitted([unidadc.id], "AJUSTES_RBAC", "ADMINISTRAR_PERMISOS") is True
        # Unknown permissions are denied even for system roles
        assert await access.is_permitted([unidadc.id], "SALIDAS", "VOLAR") is False

    async def test_inactive_role_grants_are_ignored(self, session, catalog, factory, permissions):
        retired = await factory.role("RETIRADO", is_active=False)
        await factory.grant(retired, permissions["SALIDAS:LEER"])

        access = AccessService(session, catalog)

        assert await access.is_permitted([retired.id], "SALIDAS", "LEER") is False

    async def test_user_without_roles_is_denied(self, session, catalog, factory, permissions):
        user = await factory.user()

        access = AccessService(session, catalog)

        assert await access.user_is_permitted(user.id, "DASHBOARD", "LEER") is False
        assert await access.effective_permissions(user_id=user.id) == []

    async def test_effective_permissions_for_user(self, session, catalog, factory, permissions):
        user = await factory.user()
        operador = await factory.role("OPERADOR")
        await factory.grant(operador, permissions["SALIDAS:LEER"])
        await factory.grant(operador, permissions["DASHBOARD:LEER"])
        await factory.grant(operador, permissions["SALIDAS:CREAR"], granted=False)
        await factory.assign(user, operador)

        access = AccessService(session, catalog)
        effective = await access.effective_permissions(user_id=user.id)

        assert [p.name for p in effective] == ["DASHBOARD:LEER", "SALIDAS:LEER"]


class TestVisibilityResolution:
    """Sidebar visibility through v2 rows and the legacy read grant"""

    async def test_v2_row_overrides_legacy_revocation(self, session, catalog, factory, permissions):
        operador = await factory.role("OPERADOR")
        await factory.grant(operador, permissions["SALIDAS:LEER"], granted=False)

        access = AccessService(session, catalog)
        assert await access.is_visible("SALIDAS", role_ids=[operador.id]) is False

        await VisibilityService(session, catalog).set_module_visibility(operador.id, "SALIDAS", True)

        assert await access.is_visible("SALIDAS", role_ids=[operador.id]) is True
        decisions = await access.explain_visibility(role_ids=[operador.id])
        assert decisions["SALIDAS"].source == VisibilitySource.V2

    async def test_hidden_v2_row_wins_over_legacy_grant(self, session, catalog, factory, permissions):
        operador = await factory.role("OPERADOR")
        await factory.grant(operador, permissions["SALIDAS:LEER"])
        await factory.visibility(operador, "SALIDAS", False)

        access = AccessService(session, catalog)

        assert await access.is_visible("SALIDAS", role_ids=[operador.id]) is False

    async def test_module_without_rows_defaults_to_visible(self, session, catalog, factory, permissions):
        operador = await factory.role("OPERADOR")

        access = AccessService(session, catalog)
        decisions = await access.explain_visibility(role_ids=[operador.id])

        assert decisions["STOCK_FIJO"].visible is True
        assert decisions["STOCK_FIJO"].source == VisibilitySource.DEFAULT

    async def test_visible_in_any_role_is_visible(self, session, catalog, factory, permissions):
        almacen = await factory.role("ALMACEN")
        ventas = await factory.role("VENTAS")
        await factory.visibility(almacen, "REPORTES_INVENTARIO", False)
        await factory.visibility(ventas, "REPORTES_INVENTARIO", True)

        access = AccessService(session, catalog)

        assert await access.is_visible("REPORTES_INVENTARIO", role_ids=[almacen.id]) is False
        assert await access.is_visible("REPORTES_INVENTARIO", role_ids=[almacen.id, ventas.id]) is True

    async def test_system_role_sees_everything(self, session, catalog, factory, permissions):
        unidadc = await factory.role("UNIDADC", is_system_role=True)
        await factory.visibility(unidadc, "SALIDAS", False)

        access = AccessService(session, catalog)
        modules = await access.visibility_map(role_ids=[unidadc.id])

        assert set(modules) == set(catalog.keys)
        assert all(modules.values())

    async def test_user_without_roles_sees_nothing(self, session, catalog, factory, permissions):
        user = await factory.user()

        access = AccessService(session, catalog)
        sidebar = await access.sidebar_visibility(user_id=user.id)

        assert sidebar["role_ids"] == []
        assert set(sidebar["modules"]) == set(catalog.keys)
        assert not any(sidebar["modules"].values())

    async def test_requested_role_and_user_must_exist(self, session, catalog, factory, permissions):
        operador = await factory.role("OPERADOR")
        user = await factory.user()

        access = AccessService(session, catalog)
        await access.require_target(role_id=operador.id, user_id=user.id)

        with pytest.raises(NotFoundError) as exc:
            await access.require_target(role_id=99999)
        assert exc.value.code == "ROLE_NOT_FOUND"
        assert exc.value.context == {"role_id": 99999}

        with pytest.raises(NotFoundError) as exc:
            await access.require_target(user_id=99999)
        assert exc.value.code == "USER_NOT_FOUND"

    async def test_unknown_module_is_visible(self, session, catalog, factory, permissions):
        operador = await factory.role("OPERADOR")

        access = AccessService(session, catalog)

        assert await access.is_visible("MODULO_INEXISTENTE", role_ids=[operador.id]) is True

    async def test_route_access_follows_visibility(self, session, catalog, factory, permissions):
        user = await factory.user()
        operador = await factory.role("OPERADOR")
        await factory.assign(user, operador)
        await factory.visibility(operador, "STOCK_FIJO", False)

        access = AccessService(session, catalog)

        hidden = await access.can_access_route(user.id, "/dashboard/stock-fijo/123")
        assert hidden == {"route": "/dashboard/stock-fijo/123", "module_key": "STOCK_FIJO", "allowed": False}

        unmapped = await access.can_access_route(user.id, "/dashboard/perfil")
        assert unmapped["module_key"] is None
        assert unmapped["allowed"] is True


class TestUserOverrides:
    """Per-user cells scoped to one role"""

    async def test_override_only_affects_its_user(self, session, catalog, factory, permissions):
        ana = await factory.user("ana")
        luis = await factory.user("luis")
        operador = await factory.role("OPERADOR")
        await factory.assign(ana, operador)
        await factory.assign(luis, operador)

        await VisibilityService(session, catalog).set_user_module_visibility(
            operador.id, ana.id, "SALIDAS", False
        )

        access = AccessService(session, catalog)
        ana_map = await access.visibility_map(user_id=ana.id)
        luis_map = await access.visibility_map(user_id=luis.id)

        assert ana_map["SALIDAS"] is False
        assert luis_map["SALIDAS"] is True
        # Role-level resolution without a user ignores overrides
        assert await access.is_visible("SALIDAS", role_ids=[operador.id]) is True

    async def test_override_beats_role_cell(self, session, catalog, factory, permissions):
        ana = await factory.user("ana")
        operador = await factory.role("OPERADOR")
        await factory.assign(ana, operador)
        await factory.visibility(operador, "DASHBOARD", False)
        await factory.visibility(operador, "DASHBOARD", True, user=ana)

        access = AccessService(session, catalog)
        decisions = await access.explain_visibility(user_id=ana.id)

        assert decisions["DASHBOARD"].visible is True
        assert decisions["DASHBOARD"].source == VisibilitySource.USER_OVERRIDE

    async def test_override_requires_role_membership(self, session, catalog, factory, permissions):
        ana = await factory.user("ana")
        operador = await factory.role("OPERADOR")

        with pytest.raises(InvalidStateError) as exc_info:
            await VisibilityService(session, catalog).set_user_module_visibility(
                operador.id, ana.id, "SALIDAS", False
            )

        assert exc_info.value.code == "USER_NOT_IN_ROLE"

    async def test_override_for_missing_user(self, session, catalog, factory, permissions):
        operador = await factory.role("OPERADOR")

        with pytest.raises(NotFoundError) as exc_info:
            await VisibilityService(session, catalog).set_user_module_visibility(
                operador.id, 999, "SALIDAS", False
            )

        assert exc_info.value.code == "USER_NOT_FOUND"


class TestVisibilityWrites:
    """Role cell writes, bulk toggles and their failure modes"""

    async def test_set_twice_keeps_one_row(self, session, catalog, factory, permissions):
        operador = await factory.role("OPERADOR")
        service = VisibilityService(session, catalog)

        await service.set_module_visibility(operador.id, "SALIDAS", False)
        result = await service.set_module_visibility(operador.id, "salidas", True)

        assert result == {"role_id": operador.id, "module_key": "SALIDAS", "visible": True, "user_id": None}
        rows = await session.execute(
            select(ModuleVisibility.visible).where(ModuleVisibility.role_id == operador.id)
        )
        assert rows.scalars().all() == [True]

    async def test_unknown_module_is_rejected(self, session, catalog, factory, permissions):
        operador = await factory.role("OPERADOR")

        with pytest.raises(NotFoundError) as exc_info:
            await VisibilityService(session, catalog).set_module_visibility(operador.id, "NO_EXISTE", False)

        assert exc_info.value.code == "MODULE_NOT_FOUND"
        assert exc_info.value.context["module_key"] == "NO_EXISTE"

    async def test_system_role_cannot_be_restricted(self, session, catalog, factory, permissions):
        unidadc = await factory.role("UNIDADC", is_system_role=True)

        with pytest.raises(InvalidStateError) as exc_info:
            await VisibilityService(session, catalog).set_module_visibility(unidadc.id, "SALIDAS", False)

        assert exc_info.value.code == "SYSTEM_ROLE_RESTRICTED"

    async def test_missing_role(self, session, catalog, permissions):
        with pytest.raises(NotFoundError) as exc_info:
            await VisibilityService(session, catalog).toggle_all_module_visibility(404, False)

        assert exc_info.value.code == "ROLE_NOT_FOUND"

    async def test_toggle_all_hides_every_module(self, session, catalog, factory, permissions):
        operador = await factory.role("OPERADOR")
        await factory.grant(operador, permissions["DASHBOARD:LEER"])
        service = VisibilityService(session, catalog)

        result = await service.toggle_all_module_visibility(operador.id, False)

        assert result["count"] == len(catalog)
        assert result["module_keys"] == list(catalog.keys)

        state = await service.get_role_visibility(operador.id)
        assert state["all_hidden"] is True
        assert state["visible_count"] == 0
        assert state["hidden_count"] == len(catalog)

        await service.toggle_all_module_visibility(operador.id, True)
        state = await service.get_role_visibility(operador.id)
        assert state["all_visible"] is True

    async def test_toggle_all_is_atomic(self, session, catalog, factory, permissions, monkeypatch):
        operador = await factory.role("OPERADOR")
        await factory.visibility(operador, "DASHBOARD", True)
        await factory.visibility(operador, "SALIDAS", True)
        role_id = operador.id

        real_upsert = visibility_module.upsert
        calls = []

        async def failing_upsert(*args, **kwargs):
            calls.append(kwargs)
            if len(calls) == 3:
                raise SQLAlchemyError("disk I/O error")
            return await real_upsert(*args, **kwargs)

        monkeypatch.setattr(visibility_module, "upsert", failing_upsert)

        with pytest.raises(StoreError):
            await VisibilityService(session, catalog).toggle_all_module_visibility(role_id, False)

        monkeypatch.undo()

        rows = await session.execute(
            select(ModuleVisibility.module_key, ModuleVisibility.visible)
            .where(ModuleVisibility.role_id == role_id)
            .order_by(ModuleVisibility.module_key)
        )
        assert rows.all() == [("DASHBOARD", True), ("SALIDAS", True)]
