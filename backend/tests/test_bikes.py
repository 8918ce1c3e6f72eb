"""
Bike inventory API tests.
"""

from bikeshop.models import Bike, Client, User
from bikeshop.services.access_policy import DENIED_MESSAGE


NEW_BIKE = {
    "brand": "Specialized",
    "model": "Rockhopper",
    "serial_number": "wsbc123",
    "year": 2023,
    "size": "M",
    "purchase_price_cents": 85000,
    "photos": ["https://cdn.example.com/bikes/rockhopper.jpg"],
}


class TestCreateBike:
    def test_admin_creates_available_bike(self, client, db_session, admin_user, admin_headers):
        resp = client.post("/api/bikes", json=NEW_BIKE, headers=admin_headers)
        assert resp.status_code == 201
        data = resp.get_json()
        assert data["status"] == "available"
        assert data["user_id"] == admin_user.id
        assert data["serial_number"] == "WSBC123"
        assert data["photos"] == NEW_BIKE["photos"]

        owner = db_session.get(User, admin_user.id)
        assert owner.bike_ids == [data["id"]]

    def test_regular_user_denied(self, client, db_session, staff_headers):
        resp = client.post("/api/bikes", json=NEW_BIKE, headers=staff_headers)
        assert resp.status_code == 403
        assert resp.get_json()["error"] == DENIED_MESSAGE
        assert db_session.query(Bike).count() == 0

    def test_status_cannot_be_supplied(self, client, admin_headers):
        resp = client.post("/api/bikes", json={**NEW_BIKE, "status": "sold"}, headers=admin_headers)
        assert resp.status_code == 400

    def test_required_fields(self, client, admin_headers):
        resp = client.post("/api/bikes", json={"brand": "Trek"}, headers=admin_headers)
        assert resp.status_code == 400
        assert "model" in resp.get_json()["error"]
        assert "serial_number" in resp.get_json()["error"]

    def test_duplicate_serial_conflicts(self, client, admin_headers):
        assert client.post("/api/bikes", json=NEW_BIKE, headers=admin_headers).status_code == 201
        resp = client.post("/api/bikes", json={**NEW_BIKE, "serial_number": "WSBC123"}, headers=admin_headers)
        assert resp.status_code == 409

    def test_year_out_of_range(self, client, admin_headers):
        resp = client.post("/api/bikes", json={**NEW_BIKE, "year": 1850}, headers=admin_headers)
        assert resp.status_code == 400


class TestReadBikes:
    def test_available_bike_visible_to_any_user(self, client, admin_user, staff_headers, make_bike):
        bike = make_bike(admin_user)
        resp = client.get(f"/api/bikes/{bike.id}", headers=staff_headers)
        assert resp.status_code == 200

    def test_non_available_bike_hidden_from_non_owner(self, client, admin_user, staff_headers, make_bike):
        bike = make_bike(admin_user, status="maintenance")
        resp = client.get(f"/api/bikes/{bike.id}", headers=staff_headers)
        assert resp.status_code == 403
        assert resp.get_json()["error"] == DENIED_MESSAGE

    def test_lookup_by_serial(self, client, admin_user, admin_headers, make_bike):
        make_bike(admin_user, serial_number="ABC-1")
        resp = client.get("/api/bikes/serial/abc-1", headers=admin_headers)
        assert resp.status_code == 200
        assert resp.get_json()["serial_number"] == "ABC-1"

    def test_unknown_bike(self, client, admin_headers):
        resp = client.get("/api/bikes/nope", headers=admin_headers)
        assert resp.status_code == 404

    def test_list_search_and_status(self, client, admin_user, admin_headers, make_bike):
        make_bike(admin_user, brand="Giant")
        make_bike(admin_user, brand="Trek", status="maintenance")

        resp = client.get("/api/bikes?q=gia", headers=admin_headers)
        assert [b["brand"] for b in resp.get_json()["items"]] == ["Giant"]

        resp = client.get("/api/bikes?status=maintenance", headers=admin_headers)
        assert resp.get_json()["count"] == 1

        resp = client.get("/api/bikes?status=stolen", headers=admin_headers)
        assert resp.status_code == 400

    def test_list_pagination(self, client, admin_user, admin_headers, make_bike):
        for _ in range(3):
            make_bike(admin_user)
        resp = client.get("/api/bikes?page=1&per_page=2", headers=admin_headers)
        data = resp.get_json()
        assert data["count"] == 2
        assert data["pagination"]["total"] == 3
        assert data["pagination"]["has_next"] is True

    def test_requires_authentication(self, client, db_session):
        assert client.get("/api/bikes").status_code == 401


class TestUpdateDeleteBike:
    def test_owner_updates(self, client, admin_user, admin_headers, make_bike):
        bike = make_bike(admin_user)
        resp = client.patch(f"/api/bikes/{bike.id}", json={"color": "Blue"}, headers=admin_headers)
        assert resp.status_code == 200
        assert resp.get_json()["color"] == "Blue"

    def test_status_not_writable_through_update(self, client, admin_user, admin_headers, make_bike):
        bike = make_bike(admin_user)
        resp = client.patch(f"/api/bikes/{bike.id}", json={"status": "sold"}, headers=admin_headers)
        assert resp.status_code == 400

    def test_buyer_may_edit_bought_bike_only_if_owner(self, client, admin_user, staff_user, staff_headers, make_bike):
        owned = make_bike(staff_user)
        foreign = make_bike(admin_user)

        assert client.patch(f"/api/bikes/{owned.id}", json={"color": "Green"},
                            headers=staff_headers).status_code == 200
        assert client.patch(f"/api/bikes/{foreign.id}", json={"color": "Green"},
                            headers=staff_headers).status_code == 403

    def test_delete_cleans_up_references(self, client, db_session, admin_user, staff_user, admin_headers,
                                         staff_headers, make_bike):
        bike = make_bike(admin_user)
        client.post(f"/api/bikes/{bike.id}/purchase", headers=staff_headers)
        bike_id = bike.id

        resp = client.delete(f"/api/bikes/{bike_id}", headers=admin_headers)
        assert resp.status_code == 200

        db_session.expire_all()
        assert db_session.get(Bike, bike_id) is None
        assert bike_id not in db_session.get(User, staff_user.id).bike_ids

    def test_delete_removes_serial_from_client(self, client, db_session, admin_user, admin_headers,
                                               make_bike, shop_client):
        bike = make_bike(admin_user)
        client.post("/api/sales", json={
            "bike_id": bike.id, "client_id": shop_client.id,
            "price_cents": 1000, "payment_method": "cash",
        }, headers=admin_headers)

        assert client.delete(f"/api/bikes/{bike.id}", headers=admin_headers).status_code == 200
        db_session.expire_all()
        assert db_session.get(Client, shop_client.id).bike_serial_numbers == []
