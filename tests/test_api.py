"""End-to-end tests through the HTTP API."""

from decimal import Decimal

from src.config import settings
from src.enums import Role

API = settings.API_V1_STR


class TestAuth:

    def test_register_login_me(self, client):
        resp = client.post(f"{API}/auth/register", json={
            "name": "Mona", "email": "Mona@Example.com", "password": "secret123", "role": "DRIVER"
        })
        assert resp.status_code == 201
        assert resp.json()["email"] == "mona@example.com"

        resp = client.post(f"{API}/auth/login", json={"email": "mona@example.com", "password": "secret123"})
        assert resp.status_code == 200
        token = resp.json()["access_token"]

        resp = client.get(f"{API}/auth/me", headers={"Authorization": f"Bearer {token}"})
        assert resp.status_code == 200
        assert resp.json()["role"] == "DRIVER"

    def test_duplicate_email(self, client, passenger):
        resp = client.post(f"{API}/auth/register", json={
            "name": "Again", "email": passenger.email, "password": "secret123"
        })
        assert resp.status_code == 409
        assert resp.headers["X-Error"] == "Conflict"

    def test_admin_cannot_self_register(self, client):
        resp = client.post(f"{API}/auth/register", json={
            "name": "Root", "email": "root@example.com", "password": "secret123", "role": "ADMIN"
        })
        assert resp.status_code == 422

    def test_wrong_password(self, client, passenger):
        resp = client.post(f"{API}/auth/login", json={"email": passenger.email, "password": "nope"})
        assert resp.status_code == 401
        assert resp.headers["X-Error"] == "Unauthenticated"

    def test_login_with_fixture_password(self, client, passenger):
        resp = client.post(f"{API}/auth/login", json={"email": passenger.email, "password": "secret123"})
        assert resp.status_code == 200

    def test_missing_token(self, client):
        assert client.get(f"{API}/auth/me").status_code == 401

    def test_update_profile(self, client, auth_headers, driver):
        resp = client.patch(f"{API}/auth/me", headers=auth_headers(driver), json={
            "name": "Karim Driver", "city": "Giza", "date_of_birth": "1988-07-14",
            "driver_license_number": "DL-5521"
        })
        assert resp.status_code == 200
        body = resp.json()
        assert body["name"] == "Karim Driver"
        assert body["city"] == "Giza"
        assert body["date_of_birth"] == "1988-07-14"
        assert body["driver_license_number"] == "DL-5521"

        resp = client.get(f"{API}/auth/me", headers=auth_headers(driver))
        assert resp.json()["city"] == "Giza"

    def test_update_profile_requires_name(self, client, auth_headers, passenger):
        resp = client.patch(f"{API}/auth/me", headers=auth_headers(passenger), json={"name": " "})
        assert resp.status_code == 422

    def test_passenger_license_rejected(self, client, auth_headers, passenger):
        resp = client.patch(f"{API}/auth/me", headers=auth_headers(passenger), json={
            "name": "Salma", "car_license_number": "CL-1"
        })
        assert resp.status_code == 422
        assert resp.headers["X-Error"] == "ValidationError"


class TestBookingFlow:

    def test_driver_and_passenger_day(self, client, make_user, auth_headers):
        driver = auth_headers(make_user(Role.DRIVER))
        passenger = auth_headers(make_user(Role.PASSENGER))
        neighbour = auth_headers(make_user(Role.PASSENGER))

        resp = client.put(f"{API}/vehicles/me", headers=driver, json={
            "vehicle_number": "xyz 789", "vehicle_type": "Microbus", "capacity": 5
        })
        assert resp.status_code == 200
        vehicle = resp.json()
        assert vehicle["vehicle_number"] == "XYZ789"
        assert [s["seat_number"] for s in vehicle["seats"]] == [1, 2, 3, 4, 5]
        seats = {s["seat_number"]: s for s in vehicle["seats"]}

        resp = client.post(f"{API}/routes/", headers=driver, json={
            "origin": "Giza", "destination": "Tahrir", "price_per_seat": "20.00"
        })
        assert resp.status_code == 201

        resp = client.post(f"{API}/rides/start", headers=driver, json={})
        assert resp.status_code == 201
        ride = resp.json()
        assert ride["available_seats"] == 5

        resp = client.post(f"{API}/wallet/test-funds", headers=passenger, json={"amount": "50.00"})
        assert resp.status_code == 200
        assert Decimal(resp.json()["new_balance"]) == Decimal("50.00")
        client.post(f"{API}/wallet/test-funds", headers=neighbour, json={"amount": "25.00"})

        resp = client.post(f"{API}/bookings/", headers=passenger, json={
            "ride_id": ride["id"], "seat_id": seats[2]["id"], "idempotency_key": "tap-1"
        })
        assert resp.status_code == 201
        booking = resp.json()
        assert booking["seat"]["seat_number"] == 2

        resp = client.post(f"{API}/bookings/", headers=passenger, json={
            "ride_id": ride["id"], "seat_id": seats[2]["id"], "idempotency_key": "tap-1"
        })
        assert resp.json()["id"] == booking["id"]

        resp = client.post(f"{API}/bookings/seat-code", headers=passenger, json={"code": seats[3]["code"]})
        assert resp.status_code == 200
        assert resp.json()["success"] is False
        assert resp.json()["error"] == "AlreadyBooked"

        resp = client.post(f"{API}/bookings/seat-code", headers=neighbour, json={"code": seats[3]["code"]})
        assert resp.status_code == 200
        assert resp.json()["success"]
        assert resp.json()["auto_booked"]

        resp = client.post(f"{API}/bookings/manual", headers=driver, json={
            "ride_id": ride["id"], "seat_id": seats[4]["id"]
        })
        assert resp.status_code == 201
        assert resp.json()["message"] == "Seat #4 marked as paid (cash)"

        resp = client.get(f"{API}/rides/active", headers=driver)
        assert resp.status_code == 200
        assert resp.json()["ride"]["available_seats"] == 2
        assert Decimal(resp.json()["pending_earnings"]) == Decimal("40.00")

        resp = client.get(f"{API}/bookings/me", headers=passenger, params={"status": "CONFIRMED"})
        assert [b["origin"] for b in resp.json()] == ["Giza"]

        resp = client.post(f"{API}/rides/{ride['id']}/complete", headers=driver)
        assert resp.status_code == 200
        assert Decimal(resp.json()["earnings"]) == Decimal("40.00")
        assert resp.json()["cash_bookings"] == 1

        resp = client.get(f"{API}/wallet/", headers=passenger)
        assert Decimal(resp.json()["balance"]) == Decimal("30.00")
        resp = client.get(f"{API}/wallet/", headers=neighbour)
        assert Decimal(resp.json()["balance"]) == Decimal("5.00")
        resp = client.get(f"{API}/wallet/", headers=driver)
        assert Decimal(resp.json()["balance"]) == Decimal("40.00")

    def test_business_errors_carry_error_header(self, client, auth_headers, passenger, ride, seats):
        resp = client.post(f"{API}/bookings/", headers=auth_headers(passenger), json={
            "ride_id": ride.id, "seat_id": seats[2].id
        })
        assert resp.status_code == 402
        assert resp.headers["X-Error"] == "InsufficientFunds"

    def test_lookup_failure_is_a_result(self, client, auth_headers, passenger, route, ride, seats):
        resp = client.post(f"{API}/bookings/scan", headers=auth_headers(passenger), json={
            "payload": f"{route.id}:{seats[1].id}"
        })
        assert resp.status_code == 200
        assert resp.json()["success"] is False
        assert resp.json()["error"] == "DriverSeatReserved"

    def test_unreadable_barcode_is_a_result(self, client, auth_headers, passenger):
        resp = client.post(f"{API}/bookings/scan", headers=auth_headers(passenger), json={"payload": "garbage"})
        assert resp.status_code == 200
        assert resp.json()["success"] is False
        assert resp.json()["error"] == "ValidationError"

    def test_malformed_seat_code(self, client, auth_headers, passenger):
        resp = client.post(f"{API}/bookings/seat-code", headers=auth_headers(passenger), json={"code": "12ab"})
        assert resp.status_code == 422
        assert resp.headers["X-Error"] == "ValidationError"

    def test_passenger_cannot_start_ride(self, client, auth_headers, passenger):
        resp = client.post(f"{API}/rides/start", headers=auth_headers(passenger), json={})
        assert resp.status_code == 403


class TestVehicleEndpoints:

    def test_seat_qr_png(self, client, auth_headers, driver, route, seats):
        resp = client.get(f"{API}/vehicles/seats/{seats[2].id}/qr", headers=auth_headers(driver))
        assert resp.status_code == 200
        assert resp.headers["content-type"] == "image/png"

    def test_no_vehicle_yet(self, client, auth_headers, driver):
        resp = client.get(f"{API}/vehicles/me", headers=auth_headers(driver))
        assert resp.status_code == 404


class TestAdminEndpoints:

    def test_reconcile_requires_admin(self, client, auth_headers, passenger):
        resp = client.get(f"{API}/wallet/reconcile", headers=auth_headers(passenger))
        assert resp.status_code == 403

    def test_reconcile(self, client, auth_headers, admin, passenger, fund):
        fund(passenger, 10)
        resp = client.get(f"{API}/wallet/reconcile", headers=auth_headers(admin))
        assert resp.status_code == 200
        assert resp.json() == {"consistent": True, "discrepancies": []}


def test_health(client):
    assert client.get("/health").json() == {"status": "healthy"}
