import pytest
from httpx import AsyncClient

from app.auth import rbac
from app.core.enums import UserRole
from conftest import auth_headers


ALL_ROLES = [r.value for r in UserRole]


@pytest.mark.parametrize(
    "predicate, allowed",
    [
        (rbac.is_admin, {"ADMIN"}),
        (rbac.is_executive_chef, {"EXECUTIVE_CHEF"}),
        (rbac.is_mentor, {"MENTOR"}),
        (rbac.is_professor, {"PROFESSOR"}),
        (rbac.is_student, {"STUDENT"}),
        (rbac.can_access_student, {"ADMIN", "EXECUTIVE_CHEF", "MENTOR", "PROFESSOR"}),
        (rbac.can_manage_students, {"ADMIN", "MENTOR"}),
        (rbac.can_access_accounting, {"ADMIN"}),
        (rbac.can_manage_packs, {"ADMIN"}),
        (rbac.can_create_events, {"ADMIN", "MENTOR", "PROFESSOR"}),
    ],
)
def test_role_predicates(predicate, allowed) -> None:
    for role in ALL_ROLES:
        assert predicate(role) is (role in allowed), f"{predicate.__name__}({role})"


@pytest.mark.parametrize("role", [None, "", "SUPER_ADMIN", "admin"])
def test_predicates_reject_unknown_roles(role) -> None:
    assert rbac.is_admin(role) is False
    assert rbac.can_access_student(role) is False
    assert rbac.can_create_events(role) is False


def test_impersonation_targets_exclude_admin() -> None:
    assert rbac.is_valid_impersonation_target("ADMIN") is False
    for role in ("STUDENT", "MENTOR", "PROFESSOR", "EXECUTIVE_CHEF"):
        assert rbac.is_valid_impersonation_target(role) is True


def test_require_capability_rejects_unknown_capability() -> None:
    with pytest.raises(ValueError):
        rbac.require_capability("fly")


@pytest.mark.asyncio
async def test_admin_routes_need_a_token(client: AsyncClient) -> None:
    response = await client.get("/api/v1/admin/missions")
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_admin_routes_forbid_other_roles(client: AsyncClient, make_user) -> None:
    mentor = await make_user("MENTOR")

    response = await client.get("/api/v1/admin/missions", headers=auth_headers(mentor))
    assert response.status_code == 403
    assert response.json()["detail"] == "Forbidden - Admin access required"

    response = await client.post("/api/v1/admin/payments/schedules/refresh-overdue", headers=auth_headers(mentor))
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_inactive_user_token_is_unauthorized(client: AsyncClient, make_user) -> None:
    admin = await make_user("ADMIN", active=False)

    response = await client.get("/api/v1/admin/missions", headers=auth_headers(admin))
    assert response.status_code == 401
