"""Tests for the HTTP API."""

from datetime import date, timedelta

import pytest
from jose import jwt
from sqlalchemy.exc import OperationalError

from backoffice.auth import JWT_ALGORITHM, JWT_SECRET_KEY, create_access_token
from backoffice.report_service import ReportLoadError
from backoffice.settings_service import ensure_default_settings, get_setting


class TestAuth:
    def test_health_is_public(self, api):
        assert api.get("/health").json() == {"status": "ok"}

    def test_records_require_token(self, api):
        response = api.get("/clients")
        assert response.status_code == 401
        assert response.json()["detail"] == "Authentication required"

    def test_invalid_token_rejected(self, api):
        response = api.get("/clients", headers={"Authorization": "Bearer not-a-token"})
        assert response.status_code == 401

    def test_signup_then_login(self, api):
        response = api.post(
            "/signup",
            json={"name": "Mary Wanjiku", "email": "Mary@Agency.co.ke", "password": "secret123"},
        )
        assert response.status_code == 201
        assert response.json()["user"]["email"] == "mary@agency.co.ke"

        duplicate = api.post(
            "/signup",
            json={"name": "Mary Wanjiku", "email": "mary@agency.co.ke", "password": "secret123"},
        )
        assert duplicate.status_code == 400

        login = api.post("/login", json={"email": "mary@agency.co.ke", "password": "secret123"})
        assert login.status_code == 200
        token = login.json()["access_token"]
        profile = api.get("/profile", headers={"Authorization": f"Bearer {token}"})
        assert profile.json()["user"]["name"] == "Mary Wanjiku"

    def test_login_with_wrong_password(self, api, staff_user):
        response = api.post("/login", json={"email": staff_user.email, "password": "wrong-password"})
        assert response.status_code == 401

    def test_expired_token_rejected(self, api, staff_user):
        token = create_access_token(staff_user, ttl=timedelta(minutes=-1))
        response = api.get("/clients", headers={"Authorization": f"Bearer {token}"})
        assert response.status_code == 401
        assert response.json()["detail"] == "Invalid or expired token"

    def test_token_subject_must_be_a_user_id(self, api):
        token = jwt.encode({"sub": "james"}, JWT_SECRET_KEY, algorithm=JWT_ALGORITHM)
        response = api.get("/clients", headers={"Authorization": f"Bearer {token}"})
        assert response.json()["detail"] == "Invalid token payload"

    def test_token_for_removed_user(self, api, session, staff_user, auth_headers):
        session.delete(staff_user)
        session.commit()
        response = api.get("/profile", headers=auth_headers)
        assert response.status_code == 401
        assert response.json()["detail"] == "User not found"


def create_client_and_vehicle(api, headers):
    client = api.post(
        "/clients",
        json={"first_name": "Peter", "last_name": "Kimani", "phone": "+254722333444", "email": "peter@mail.co.ke"},
        headers=headers,
    )
    assert client.status_code == 201
    vehicle = api.post(
        "/vehicles",
        json={
            "client_id": client.json()["id"],
            "make": "Subaru",
            "model": "Forester",
            "year": 2014,
            "registration_number": "KCB 789C",
            "vehicle_value": 1600000,
        },
        headers=headers,
    )
    assert vehicle.status_code == 201
    return client.json(), vehicle.json()


class TestRecords:
    def test_policy_claim_payment_flow(self, api, auth_headers):
        client, vehicle = create_client_and_vehicle(api, auth_headers)
        today = date.today()
        policy = api.post(
            "/policies",
            json={
                "client_id": client["id"],
                "vehicle_id": vehicle["id"],
                "policy_type": "comprehensive",
                "start_date": (today - timedelta(days=340)).isoformat(),
                "end_date": (today + timedelta(days=7)).isoformat(),
                "premium_amount": 67000,
                "sum_insured": 1600000,
            },
            headers=auth_headers,
        )
        assert policy.status_code == 201
        body = policy.json()
        assert body["client_name"] == "Peter Kimani"
        assert body["is_expiring"] is True

        claim = api.post(
            "/claims",
            json={
                "policy_id": body["id"],
                "claim_type": "vandalism",
                "incident_date": today.isoformat(),
                "description": "Side mirrors stolen",
                "claim_amount": 45000,
            },
            headers=auth_headers,
        )
        assert claim.status_code == 201
        settled = api.post(
            f"/claims/{claim.json()['id']}/status",
            json={"status": "settled", "settled_amount": 40000},
            headers=auth_headers,
        )
        assert settled.json()["settlement_date"] == today.isoformat()

        payment = api.post(
            "/payments",
            json={
                "client_id": client["id"],
                "policy_id": body["id"],
                "amount": 67000,
                "payment_method": "cash",
                "payment_type": "renewal",
                "status": "completed",
            },
            headers=auth_headers,
        )
        assert payment.status_code == 201

        listed = api.get("/policies", params={"search": "kcb 789"}, headers=auth_headers)
        assert [row["policy_number"] for row in listed.json()["policies"]] == [body["policy_number"]]

        claims = api.get("/claims", params={"status": "settled"}, headers=auth_headers)
        assert len(claims.json()["claims"]) == 1

    def test_negative_amount_rejected(self, api, auth_headers):
        client, _ = create_client_and_vehicle(api, auth_headers)
        response = api.post(
            "/vehicles",
            json={
                "client_id": client["id"],
                "make": "Honda",
                "model": "Fit",
                "year": 2012,
                "registration_number": "KDA 111A",
                "vehicle_value": -5,
            },
            headers=auth_headers,
        )
        assert response.status_code == 422

    def test_mismatched_vehicle_is_bad_request(self, api, auth_headers, insured_client):
        _, grace_vehicle, _ = insured_client
        client, _ = create_client_and_vehicle(api, auth_headers)
        response = api.post(
            "/policies",
            json={
                "client_id": client["id"],
                "vehicle_id": grace_vehicle.id,
                "start_date": "2026-01-01",
                "end_date": "2026-12-31",
                "premium_amount": 1000,
                "sum_insured": 10000,
            },
            headers=auth_headers,
        )
        assert response.status_code == 400
        assert response.json()["detail"] == "Vehicle does not belong to this client"

    def test_policy_views_share_the_configured_window(self, api, auth_headers, session):
        ensure_default_settings(session)
        api.put("/settings/expiry_window_days", json={"setting_value": "60"}, headers=auth_headers)
        client, vehicle = create_client_and_vehicle(api, auth_headers)
        today = date.today()
        created = api.post(
            "/policies",
            json={
                "client_id": client["id"],
                "vehicle_id": vehicle["id"],
                "start_date": (today - timedelta(days=300)).isoformat(),
                "end_date": (today + timedelta(days=45)).isoformat(),
                "premium_amount": 30000,
                "sum_insured": 900000,
            },
            headers=auth_headers,
        ).json()
        assert created["is_expiring"] is True

        detail = api.get(f"/policies/{created['id']}", headers=auth_headers).json()
        listed = api.get("/policies", headers=auth_headers).json()["policies"]
        assert detail["is_expiring"] is True
        assert listed[0]["is_expiring"] is True

        updated = api.put(
            f"/policies/{created['id']}",
            json={
                "client_id": client["id"],
                "vehicle_id": vehicle["id"],
                "start_date": (today - timedelta(days=300)).isoformat(),
                "end_date": (today + timedelta(days=45)).isoformat(),
                "premium_amount": 31000,
                "sum_insured": 900000,
            },
            headers=auth_headers,
        ).json()
        assert updated["is_expiring"] is True

    def test_insured_vehicle_cannot_change_owner(self, api, auth_headers, insured_client):
        _, grace_vehicle, _ = insured_client
        other, _ = create_client_and_vehicle(api, auth_headers)
        response = api.put(
            f"/vehicles/{grace_vehicle.id}",
            json={
                "client_id": other["id"],
                "make": grace_vehicle.make,
                "model": grace_vehicle.model,
                "year": grace_vehicle.year,
                "registration_number": grace_vehicle.registration_number,
                "vehicle_value": grace_vehicle.vehicle_value,
            },
            headers=auth_headers,
        )
        assert response.status_code == 400
        assert response.json()["detail"] == "Vehicle has policies and cannot move to another client"

    def test_missing_record_is_not_found(self, api, auth_headers):
        assert api.get("/clients/999", headers=auth_headers).status_code == 404
        assert api.delete("/payments/999", headers=auth_headers).status_code == 404

    def test_full_update_and_delete(self, api, auth_headers):
        client, _ = create_client_and_vehicle(api, auth_headers)
        updated = api.put(
            f"/clients/{client['id']}",
            json={"first_name": "Peter", "last_name": "Kamau", "phone": "+254722333444", "status": "suspended"},
            headers=auth_headers,
        )
        assert updated.json()["full_name"] == "Peter Kamau"
        assert updated.json()["email"] is None
        assert updated.json()["status"] == "suspended"

        assert api.delete(f"/clients/{client['id']}", headers=auth_headers).status_code == 204
        assert api.get("/vehicles", headers=auth_headers).json()["vehicles"] == []


class TestSettings:
    def test_list_and_update(self, api, auth_headers, session):
        ensure_default_settings(session)
        grouped = api.get("/settings", headers=auth_headers).json()["settings"]
        assert "policies" in grouped

        bad = api.put("/settings/renewal_reminders_enabled", json={"setting_value": "maybe"}, headers=auth_headers)
        assert bad.status_code == 400
        good = api.put("/settings/renewal_reminders_enabled", json={"setting_value": "FALSE"}, headers=auth_headers)
        assert good.json()["setting_value"] == "false"
        assert api.put("/settings/nope", json={"setting_value": "1"}, headers=auth_headers).status_code == 404

    @pytest.mark.parametrize("value", ["inf", "-inf", "nan", "100000000", "0", "2.5"])
    def test_expiry_window_rejects_unusable_values(self, api, auth_headers, session, value):
        ensure_default_settings(session)
        response = api.put("/settings/expiry_window_days", json={"setting_value": value}, headers=auth_headers)
        assert response.status_code == 400
        assert api.get("/dashboard", headers=auth_headers).status_code == 200

    def test_report_period_is_bounded(self, api, auth_headers, session):
        ensure_default_settings(session)
        too_long = api.put("/settings/report_period_months", json={"setting_value": "61"}, headers=auth_headers)
        assert too_long.status_code == 400
        ok = api.put("/settings/report_period_months", json={"setting_value": "24.0"}, headers=auth_headers)
        assert ok.json()["setting_value"] == "24"

    def test_stored_out_of_range_window_falls_back_to_default(self, api, auth_headers, session, insured_client):
        ensure_default_settings(session)
        setting = get_setting(session, "expiry_window_days")
        setting.setting_value = "100000000"
        session.commit()

        assert api.get("/dashboard", headers=auth_headers).status_code == 200
        assert api.get("/policies", headers=auth_headers).status_code == 200
        assert api.get("/reports/analytics", headers=auth_headers).status_code == 200


class TestReports:
    def test_dashboard(self, api, auth_headers, insured_client):
        _, _, policy = insured_client
        as_of = policy.end_date - timedelta(days=4)
        response = api.get("/dashboard", params={"as_of": as_of.isoformat()}, headers=auth_headers)
        assert response.status_code == 200
        body = response.json()
        assert body["clients"]["total"] == 1
        assert body["expiring_soon"] == 1
        assert body["expiring_policies"][0]["days_remaining"] == 4
        assert body["expiring_policies"][0]["client_name"] == "Grace Njeri"

    def test_analytics_window_from_query(self, api, auth_headers, insured_client):
        response = api.get(
            "/reports/analytics",
            params={"months": 3, "as_of": "2026-10-19"},
            headers=auth_headers,
        )
        body = response.json()
        assert [bucket["month"] for bucket in body["monthly_revenue"]] == ["Aug 2026", "Sep 2026", "Oct 2026"]
        assert body["top_clients"][0]["name"] == "Grace Njeri"
        assert body["policy_types"][0]["percentage"] == 100

    def test_analytics_window_from_settings(self, api, auth_headers, session):
        ensure_default_settings(session)
        api.put("/settings/report_period_months", json={"setting_value": "6"}, headers=auth_headers)
        body = api.get("/reports/analytics", headers=auth_headers).json()
        assert len(body["monthly_revenue"]) == 6

    def test_load_failure_is_reported_once(self, api, auth_headers, monkeypatch):
        def fail(_db):
            raise ReportLoadError("Failed to load analytics data")

        monkeypatch.setattr("backoffice.report_service.load_snapshot", fail)
        for path in ("/dashboard", "/reports/analytics"):
            response = api.get(path, headers=auth_headers)
            assert response.status_code == 503
            assert response.json() == {"detail": "Failed to load analytics data"}

    def test_settings_read_failure_is_unavailable(self, api, auth_headers, monkeypatch):
        def fail(_db, _key, _default):
            raise OperationalError("SELECT", {}, Exception("database is locked"))

        monkeypatch.setattr("backoffice.report_service.get_int_setting", fail)
        for path in ("/dashboard", "/reports/analytics"):
            response = api.get(path, headers=auth_headers)
            assert response.status_code == 503
            assert response.json() == {"detail": "Failed to load analytics data"}
