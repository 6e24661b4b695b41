import pytest

from access_control.core.exceptions import InvalidStateError, NotFoundError
from access_control.services.auth.user_role_service import UserRoleService


class TestAssignRole:
    """One role per user, changed only by remove then assign"""

    async def test_assign_role(self, session, factory):
        user = await factory.user()
        role = await factory.role("OPERADOR")

        assignment = await UserRoleService(session).assign_role(user.id, role.id, actor_id=1)

        assert assignment["user_id"] == user.id
        assert assignment["role_id"] == role.id
        assert assignment["role_name"] == "OPERADOR"
        assert assignment["assigned_by"] == 1

        roles = await UserRoleService(session).list_user_roles(user.id)
        assert [r["role_name"] for r in roles] == ["OPERADOR"]

    async def test_same_role_twice(self, session, factory):
        user = await factory.user()
        role = await factory.role("OPERADOR")
        service = UserRoleService(session)
        await service.assign_role(user.id, role.id)

        with pytest.raises(InvalidStateError) as exc_info:
            await service.assign_role(user.id, role.id)

        assert exc_info.value.code == "ROLE_ALREADY_ASSIGNED"

    async def test_second_role_is_rejected(self, session, factory):
        user = await factory.user()
        role_a = await factory.role("ALMACEN")
        role_b = await factory.role("VENTAS")
        service = UserRoleService(session)
        await service.assign_role(user.id, role_a.id)

        with pytest.raises(InvalidStateError) as exc_info:
            await service.assign_role(user.id, role_b.id)

        assert exc_info.value.code == "USER_ALREADY_HAS_ROLE"
        assert exc_info.value.context["current_roles"] == ["ALMACEN"]
        assert "suggestion" in exc_info.value.detail

    async def test_change_role_by_remove_then_assign(self, session, factory):
        user = await factory.user()
        role_a = await factory.role("ALMACEN")
        role_b = await factory.role("VENTAS")
        service = UserRoleService(session)
        await service.assign_role(user.id, role_a.id)

        assert await service.remove_role(user.id, role_a.id) is True
        await service.assign_role(user.id, role_b.id)

        roles = await service.list_user_roles(user.id)
        assert [r["role_id"] for r in roles] == [role_b.id]

    async def test_unknown_or_inactive_user(self, session, factory):
        role = await factory.role("OPERADOR")
        inactive = await factory.user(is_active=False)
        service = UserRoleService(session)
        role_id = role.id

        for user_id in (999, inactive.id):
            with pytest.raises(NotFoundError) as exc_info:
                await service.assign_role(user_id, role_id)
            assert exc_info.value.code == "USER_NOT_FOUND"

    async def test_unknown_role(self, session, factory):
        user = await factory.user()

        with pytest.raises(NotFoundError) as exc_info:
            await UserRoleService(session).assign_role(user.id, 999)

        assert exc_info.value.code == "ROLE_NOT_FOUND"

    async def test_inactive_role(self, session, factory):
        user = await factory.user()
        role = await factory.role("RETIRADO", is_active=False)

        with pytest.raises(InvalidStateError) as exc_info:
            await UserRoleService(session).assign_role(user.id, role.id)

        assert exc_info.value.code == "ROLE_INACTIVE"

    async def test_system_role_assignment(self, session, factory):
        user = await factory.user()
        unidadc = await factory.role("UNIDADC", is_system_role=True)
        service = UserRoleService(session)
        user_id, role_id = user.id, unidadc.id

        with pytest.raises(InvalidStateError) as exc_info:
            await service.assign_role(user_id, role_id)
        assert exc_info.value.code == "SYSTEM_ROLE_RESTRICTED"

        await service.assign_role(user_id, role_id, actor_is_system=True)

        with pytest.raises(InvalidStateError):
            await service.remove_role(user_id, role_id)


class TestRemoveRole:
    async def test_remove_missing_assignment(self, session, factory):
        user = await factory.user()
        role = await factory.role("OPERADOR")

        with pytest.raises(NotFoundError) as exc_info:
            await UserRoleService(session).remove_role(user.id, role.id)

        assert exc_info.value.code == "ASSIGNMENT_NOT_FOUND"
