"""
Bike lifecycle tests.

available -> sold only through a sale; available <-> maintenance by whoever
may update the bike; sold is terminal.
"""

import pytest

from bikeshop.services import lifecycle_service
from bikeshop.services.lifecycle_service import (
    AVAILABLE,
    MAINTENANCE,
    SOLD,
    LifecycleError,
    can_transition,
    require_transition,
)


class TestTransitionTable:
    @pytest.mark.parametrize("from_status,to_status,allowed", [
        (AVAILABLE, MAINTENANCE, True),
        (MAINTENANCE, AVAILABLE, True),
        (AVAILABLE, SOLD, False),
        (SOLD, AVAILABLE, False),
        (SOLD, MAINTENANCE, False),
        (MAINTENANCE, SOLD, False),
    ])
    def test_manual_transitions(self, from_status, to_status, allowed):
        assert can_transition(from_status, to_status) is allowed

    def test_sale_only_from_available(self):
        assert can_transition(AVAILABLE, SOLD, via_sale=True)
        assert not can_transition(MAINTENANCE, SOLD, via_sale=True)
        assert not can_transition(SOLD, SOLD, via_sale=True)

    def test_sold_requires_sale(self):
        with pytest.raises(LifecycleError, match="recording a sale"):
            require_transition(AVAILABLE, SOLD)

    def test_same_status_rejected(self):
        with pytest.raises(LifecycleError, match="already"):
            require_transition(MAINTENANCE, MAINTENANCE)

    def test_unknown_status_rejected(self):
        with pytest.raises(LifecycleError, match="Invalid status"):
            require_transition(AVAILABLE, "stolen")


class TestStatusEndpoint:
    def test_owner_moves_bike_to_maintenance_and_back(self, client, admin_user, admin_headers, make_bike):
        bike = make_bike(admin_user)

        resp = client.post(f"/api/bikes/{bike.id}/status", json={"status": "maintenance"}, headers=admin_headers)
        assert resp.status_code == 200
        assert resp.get_json()["status"] == "maintenance"

        resp = client.post(f"/api/bikes/{bike.id}/status", json={"status": "available"}, headers=admin_headers)
        assert resp.status_code == 200
        assert resp.get_json()["status"] == "available"

    def test_cannot_mark_sold_manually(self, client, admin_user, admin_headers, make_bike):
        bike = make_bike(admin_user)
        resp = client.post(f"/api/bikes/{bike.id}/status", json={"status": "sold"}, headers=admin_headers)
        assert resp.status_code == 400

    def test_sold_is_terminal(self, client, admin_user, admin_headers, make_bike):
        bike = make_bike(admin_user, status="sold")
        resp = client.post(f"/api/bikes/{bike.id}/status", json={"status": "available"}, headers=admin_headers)
        assert resp.status_code == 400

    def test_non_owner_denied(self, client, admin_user, staff_headers, make_bike):
        bike = make_bike(admin_user)
        resp = client.post(f"/api/bikes/{bike.id}/status", json={"status": "maintenance"}, headers=staff_headers)
        assert resp.status_code == 403

    def test_missing_status(self, client, admin_user, admin_headers, make_bike):
        bike = make_bike(admin_user)
        resp = client.post(f"/api/bikes/{bike.id}/status", json={}, headers=admin_headers)
        assert resp.status_code == 400

    def test_service_bumps_version(self, db_session, admin_user, make_bike):
        from conftest import requester

        bike = make_bike(admin_user)
        before = bike.version_id
        updated = lifecycle_service.change_bike_status(bike.id, MAINTENANCE, requester=requester(admin_user))
        assert updated.version_id == before + 1
