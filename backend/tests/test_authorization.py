"""
Authorization tests.

Verifies:
- Unauthenticated requests return 401
- Users can only read and edit their own profile
- Only admins (MANAGE_STAFF) reach the admin API
- Role changes take effect on the next request
"""

import pytest

from bikeshop.models import CapabilityOverride, SecurityEvent
from bikeshop.services import permission_service

from conftest import TEST_PASSWORD, auth_headers, get_auth_token, make_user


# =============================================================================
# UNAUTHENTICATED ACCESS: 401
# =============================================================================


class TestUnauthenticatedAccess:
    """All protected endpoints return 401 without a token."""

    @pytest.mark.parametrize(
        "method,path",
        [
            ("GET", "/api/auth/me"),
            ("POST", "/api/auth/logout"),
            ("GET", "/api/users/abc"),
            ("GET", "/api/admin/users"),
            ("GET", "/api/admin/capabilities"),
            ("GET", "/api/bikes"),
            ("POST", "/api/bikes"),
            ("POST", "/api/bikes/abc/purchase"),
            ("GET", "/api/clients"),
            ("GET", "/api/sales"),
            ("POST", "/api/sales"),
            ("GET", "/api/jobs"),
            ("POST", "/api/jobs/scan"),
            ("GET", "/api/settings"),
            ("PUT", "/api/settings/theme"),
        ],
    )
    def test_requires_auth(self, client, db_session, method, path):
        resp = getattr(client, method.lower())(path)
        assert resp.status_code == 401, f"{method} {path} returned {resp.status_code}"

    def test_bogus_token(self, client, db_session):
        resp = client.get("/api/bikes", headers={"Authorization": "Bearer not-a-token"})
        assert resp.status_code == 401


# =============================================================================
# USER PROFILES: SELF ONLY
# =============================================================================


class TestUserProfiles:
    def test_read_own_profile(self, client, staff_user, staff_headers):
        resp = client.get(f"/api/users/{staff_user.id}", headers=staff_headers)
        assert resp.status_code == 200
        assert resp.get_json()["email"] == staff_user.email

    def test_cannot_read_other_profile(self, client, other_user, staff_headers):
        resp = client.get(f"/api/users/{other_user.id}", headers=staff_headers)
        assert resp.status_code == 403
        assert resp.get_json()["error"] == "Missing or insufficient permissions."

    def test_admin_cannot_read_other_profile_directly(self, client, staff_user, admin_headers):
        resp = client.get(f"/api/users/{staff_user.id}", headers=admin_headers)
        assert resp.status_code == 403

    def test_update_own_profile(self, client, staff_user, staff_headers):
        resp = client.patch(f"/api/users/{staff_user.id}", json={"name": "Sam S.", "phone": "0400111222"},
                            headers=staff_headers)
        assert resp.status_code == 200
        assert resp.get_json()["name"] == "Sam S."

    def test_profile_cannot_write_role(self, client, staff_user, staff_headers):
        resp = client.patch(f"/api/users/{staff_user.id}", json={"role": "admin"}, headers=staff_headers)
        assert resp.status_code == 400
        assert "role" in resp.get_json()["error"]

    def test_email_clash(self, client, staff_user, other_user, staff_headers):
        resp = client.patch(f"/api/users/{staff_user.id}", json={"email": other_user.email},
                            headers=staff_headers)
        assert resp.status_code == 409


# =============================================================================
# ADMIN API
# =============================================================================


class TestAdminApi:
    @pytest.mark.parametrize(
        "method,path",
        [
            ("GET", "/api/admin/users"),
            ("GET", "/api/admin/capabilities"),
        ],
    )
    def test_user_role_denied(self, client, staff_headers, method, path):
        resp = getattr(client, method.lower())(path, headers=staff_headers)
        assert resp.status_code == 403
        assert resp.get_json()["required_capability"] == "MANAGE_STAFF"

    def test_denial_is_audited(self, client, db_session, staff_headers):
        client.get("/api/admin/users", headers=staff_headers)
        assert db_session.query(SecurityEvent).filter_by(event_type="CAPABILITY_DENIED").count() >= 1

    def test_admin_lists_users(self, client, admin_headers, staff_user):
        resp = client.get("/api/admin/users?role=user", headers=admin_headers)
        assert resp.status_code == 200
        emails = [u["email"] for u in resp.get_json()["users"]]
        assert emails == [staff_user.email]

    def test_promotion_takes_effect_next_request(self, client, admin_headers, staff_user, staff_headers):
        assert client.get("/api/admin/users", headers=staff_headers).status_code == 403

        resp = client.post(f"/api/admin/users/{staff_user.id}/role", json={"role": "admin"}, headers=admin_headers)
        assert resp.status_code == 200
        assert resp.get_json()["user"]["role"] == "admin"

        assert client.get("/api/admin/users", headers=staff_headers).status_code == 200

    def test_invalid_role(self, client, admin_headers, staff_user):
        resp = client.post(f"/api/admin/users/{staff_user.id}/role", json={"role": "owner"}, headers=admin_headers)
        assert resp.status_code == 400

    def test_admin_cannot_change_own_role(self, client, admin_user, admin_headers):
        resp = client.post(f"/api/admin/users/{admin_user.id}/role", json={"role": "user"}, headers=admin_headers)
        assert resp.status_code == 400

    def test_manage_staff_cannot_be_granted(self, client, admin_headers, staff_user):
        resp = client.post(f"/api/admin/users/{staff_user.id}/capability-overrides",
                           json={"capability": "MANAGE_STAFF", "override_type": "GRANT"},
                           headers=admin_headers)
        assert resp.status_code == 400

    def test_override_listed_and_cleared(self, client, admin_headers, staff_user):
        client.post(f"/api/admin/users/{staff_user.id}/capability-overrides",
                    json={"capability": "EDIT_THEME", "override_type": "GRANT", "reason": "Brand refresh"},
                    headers=admin_headers)
        resp = client.get(f"/api/admin/users/{staff_user.id}/capability-overrides", headers=admin_headers)
        assert [o["capability"] for o in resp.get_json()["overrides"]] == ["EDIT_THEME"]

        resp = client.delete(f"/api/admin/users/{staff_user.id}/capability-overrides/EDIT_THEME",
                             headers=admin_headers)
        assert resp.status_code == 200
        resp = client.delete(f"/api/admin/users/{staff_user.id}/capability-overrides/EDIT_THEME",
                             headers=admin_headers)
        assert resp.status_code == 404

    def test_capability_catalogue(self, client, admin_headers):
        data = client.get("/api/admin/capabilities", headers=admin_headers).get_json()
        assert "MANAGE_STAFF" in data["protected"]
        assert data["by_category"]


# =============================================================================
# ADMINS ARE NOT SUBJECT TO CAPABILITY OVERRIDES
# =============================================================================


class TestAdminCapabilities:
    @pytest.fixture
    def second_admin(self, db_session):
        return make_user("ada@bikeshop.test", "Ada Admin", role="admin")

    def test_override_on_admin_refused(self, client, admin_headers, second_admin):
        resp = client.post(f"/api/admin/users/{second_admin.id}/capability-overrides",
                           json={"capability": "MANAGE_BIKES", "override_type": "DENY"},
                           headers=admin_headers)
        assert resp.status_code == 400

    def test_stale_deny_does_not_block_admin(self, client, db_session, admin_user, staff_user,
                                             admin_headers, make_bike):
        # DENY recorded while the user was staff, then the user is promoted
        permission_service.set_capability_override(
            user_id=staff_user.id,
            capability="MANAGE_BIKES",
            override_type="DENY",
            granted_by_user_id=admin_user.id,
        )
        resp = client.post(f"/api/admin/users/{staff_user.id}/role", json={"role": "admin"}, headers=admin_headers)
        assert resp.status_code == 200
        assert db_session.query(CapabilityOverride).filter_by(user_id=staff_user.id, is_active=True).count() == 1

        headers = auth_headers(get_auth_token(client, staff_user.email, TEST_PASSWORD))
        resp = client.post("/api/bikes", json={"brand": "Trek", "model": "FX 2", "serial_number": "ADM-1"},
                           headers=headers)
        assert resp.status_code == 201

        other_bike = make_bike(admin_user)
        assert client.post(f"/api/bikes/{other_bike.id}/status", json={"status": "maintenance"},
                           headers=headers).status_code == 200
        assert client.delete(f"/api/bikes/{other_bike.id}", headers=headers).status_code == 200
