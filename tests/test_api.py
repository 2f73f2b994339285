import io

from app.modules.auth.models import UserRole

from conftest import auth_headers, report_payload

API = "/api/v1"

# 1x1 PNG
PNG_BYTES = (
    b"\x89PNG\r\n\x1a\n\x00\x00\x00\rIHDR\x00\x00\x00\x01\x00\x00\x00\x01\x08\x06\x00\x00\x00\x1f\x15\xc4\x89"
    b"\x00\x00\x00\rIDATx\x9cc\xf8\x0f\x00\x00\x01\x01\x00\x05\x18\xd8N\x00\x00\x00\x00IEND\xaeB`\x82"
)


def create_report(client, headers=None, **overrides):
    response = client.post(f"{API}/reports", json=report_payload(**overrides), headers=headers or {})
    assert response.status_code == 201, response.text
    return response.json()


def test_health(client):
    response = client.get(f"{API}/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_public_config(client):
    response = client.get(f"{API}/config/public")
    assert response.status_code == 200
    data = response.json()
    assert data["report_categories"] == ["POTHOLE", "STREETLIGHT", "SIDEWALK", "DRAINAGE"]
    assert "notification_events" not in data


def test_anonymous_create_and_track(client):
    created = create_report(client, reporter_email="guest@example.com")
    assert created["status"] == "RECEIVED"

    response = client.get(f"{API}/reports/lookup", params={"report_id": created["id"], "email": "guest@example.com"})
    assert response.status_code == 200
    assert response.json()["status_history"][0]["status"] == "RECEIVED"

    response = client.get(f"{API}/reports/{created['id']}", params={"email": "someone@example.com"})
    assert response.status_code == 403


def test_create_validation_errors_are_400(client):
    response = client.post(f"{API}/reports", json=report_payload(description="short", reporter_email="a@example.com"))
    assert response.status_code == 400
    assert response.json()["errors"]

    response = client.post(f"{API}/reports", json=report_payload(location={"lat": 120, "lng": 0}, reporter_email="a@example.com"))
    assert response.status_code == 400

    response = client.post(f"{API}/reports", json=report_payload())
    assert response.status_code == 400


def test_status_flow_over_http(client, seed_user, queued_jobs):
    citizen = seed_user(UserRole.CITIZEN)
    operator = seed_user(UserRole.OPERATOR)
    report = create_report(client, headers=auth_headers(citizen))
    url = f"{API}/reports/{report['id']}/status"

    response = client.patch(url, json={"status": "VERIFIED"}, headers=auth_headers(citizen))
    assert response.status_code == 403

    response = client.patch(url, json={"status": "CLOSED", "note": "x"}, headers=auth_headers(operator))
    assert response.status_code == 409

    response = client.patch(url, json={"status": "VERIFIED"}, headers=auth_headers(operator))
    assert response.status_code == 200
    assert response.json()["status"] == "VERIFIED"

    response = client.get(f"{API}/reports/{report['id']}/events", headers=auth_headers(citizen))
    assert response.status_code == 200
    assert [e["type"] for e in response.json()] == ["REPORT_CREATED", "STATUS_CHANGED"]

    response = client.get(f"{API}/reports/mine", headers=auth_headers(citizen))
    assert [item["id"] for item in response.json()["items"]] == [report["id"]]


def test_status_requires_authentication(client):
    report = create_report(client, reporter_email="guest@example.com")
    response = client.patch(f"{API}/reports/{report['id']}/status", json={"status": "VERIFIED"})
    assert response.status_code == 401


def test_triage_over_http(client, seed_user):
    operator = seed_user(UserRole.OPERATOR)
    report = create_report(client, reporter_email="guest@example.com")
    url = f"{API}/reports/{report['id']}/triage"

    response = client.patch(url, json={"impact": 5, "urgency": 5, "priority_override": "LOW"}, headers=auth_headers(operator))
    assert response.status_code == 200
    assert response.json()["priority"] == "CRITICAL"
    assert response.json()["effective_priority"] == "LOW"

    response = client.patch(url, json={"impact": 6, "urgency": 5}, headers=auth_headers(operator))
    assert response.status_code == 400

    response = client.patch(url, json={"impact": "5", "urgency": 5}, headers=auth_headers(operator))
    assert response.status_code == 400


def test_unknown_survey_token(client):
    response = client.get(f"{API}/reports/survey/not-a-token")
    assert response.status_code == 404

    response = client.post(f"{API}/reports/survey/not-a-token", json={"rating": 3})
    assert response.status_code == 404

    response = client.post(f"{API}/reports/survey/not-a-token", json={"rating": 9, "comment": "x" * 600})
    assert response.status_code == 404


def test_survey_token_from_invitation(client, seed_user, queued_jobs):
    operator = seed_user(UserRole.OPERATOR)
    report = create_report(client, reporter_email="guest@example.com")
    for status, note in [("VERIFIED", None), ("SCHEDULED", None), ("IN_PROGRESS", None), ("RESOLVED", "done"), ("CLOSED", "ok")]:
        client.patch(
            f"{API}/reports/{report['id']}/status",
            json={"status": status, "note": note},
            headers=auth_headers(operator),
        )

    invitation = next(k for _, k in queued_jobs if "/survey/" in k["text"])
    token = invitation["text"].split("/survey/")[1].split()[0]

    response = client.get(f"{API}/reports/survey/{token}")
    assert response.status_code == 200
    assert response.json()["report"]["id"] == report["id"]
    assert response.json()["submitted_at"] is None

    response = client.post(f"{API}/reports/survey/{token}", json={"rating": 9})
    assert response.status_code == 400

    response = client.post(f"{API}/reports/survey/{token}", json={"rating": 5, "comment": "Great"})
    assert response.status_code == 200
    assert response.json()["submitted_at"]

    response = client.post(f"{API}/reports/survey/{token}", json={"rating": 1})
    assert response.status_code == 409

    response = client.post(f"{API}/reports/survey/{token}", json={"rating": 9})
    assert response.status_code == 409


def test_photo_upload(client, seed_user):
    citizen = seed_user(UserRole.CITIZEN)
    report = create_report(client, headers=auth_headers(citizen))

    response = client.post(
        f"{API}/reports/{report['id']}/photos",
        files=[("photos", ("hole.png", io.BytesIO(PNG_BYTES), "image/png"))],
        headers=auth_headers(citizen),
    )
    assert response.status_code == 200, response.text
    urls = response.json()["photo_urls"]
    assert len(urls) == 1
    assert urls[0].startswith("/static/uploads/")

    response = client.post(
        f"{API}/reports/{report['id']}/photos",
        files=[("photos", ("notes.txt", io.BytesIO(b"hello"), "text/plain"))],
        headers=auth_headers(citizen),
    )
    assert response.status_code == 400


def test_evidence_is_staff_only_and_logged(client, seed_user):
    citizen = seed_user(UserRole.CITIZEN)
    operator = seed_user(UserRole.OPERATOR)
    report = create_report(client, headers=auth_headers(citizen))
    url = f"{API}/reports/{report['id']}/evidence"
    files = [("files", ("after.png", io.BytesIO(PNG_BYTES), "image/png"))]

    response = client.post(url, data={"type": "AFTER"}, files=files, headers=auth_headers(citizen))
    assert response.status_code == 403

    files = [("files", ("after.png", io.BytesIO(PNG_BYTES), "image/png"))]
    response = client.post(url, data={"type": "AFTER", "note": "Patched"}, files=files, headers=auth_headers(operator))
    assert response.status_code == 201, response.text
    assert response.json()[0]["type"] == "AFTER"

    response = client.get(url, params={"type": "AFTER"}, headers=auth_headers(citizen))
    assert len(response.json()) == 1

    events = client.get(f"{API}/reports/{report['id']}/events", headers=auth_headers(operator)).json()
    evidence_events = [e for e in events if e["type"] == "EVIDENCE_ADDED"]
    assert len(evidence_events) == 1
    assert evidence_events[0]["data"]["type"] == "AFTER"


def test_public_and_admin_map(client, seed_user):
    operator = seed_user(UserRole.OPERATOR)
    create_report(client, reporter_email="guest@example.com")
    bbox = {"min_lng": -59, "min_lat": -35, "max_lng": -58, "max_lat": -34}

    response = client.get(f"{API}/reports/map", params=bbox)
    assert response.status_code == 200
    assert response.json()["count"] == 1
    assert response.json()["items"][0]["address_text"] is None

    response = client.get(f"{API}/admin/reports/map", params=bbox, headers=auth_headers(operator))
    assert response.json()["items"][0]["address_text"] == "Av. de Mayo 500"

    response = client.get(f"{API}/reports/map", params={**bbox, "min_lng": -57})
    assert response.status_code == 400


def test_admin_listing_and_metrics(client, seed_user):
    operator = seed_user(UserRole.OPERATOR)
    citizen = seed_user(UserRole.CITIZEN)
    create_report(client, reporter_email="guest@example.com")
    create_report(client, reporter_email="guest@example.com", category="DRAINAGE", description="Drain clogged with leaves")

    response = client.get(f"{API}/admin/reports", params={"category": "DRAINAGE"}, headers=auth_headers(operator))
    assert response.status_code == 200
    assert response.json()["total"] == 1

    response = client.get(f"{API}/admin/reports", headers=auth_headers(citizen))
    assert response.status_code == 403

    response = client.get(f"{API}/admin/metrics/summary", headers=auth_headers(operator))
    assert response.json()["totals"]["all"] == 2
    assert response.json()["by_category"]["DRAINAGE"] == 1


def test_admin_config_and_users(client, seed_user):
    admin = seed_user(UserRole.ADMIN)
    supervisor = seed_user(UserRole.SUPERVISOR)
    operator = seed_user(UserRole.OPERATOR)

    response = client.patch(f"{API}/admin/config", json={"map_max_points": 50}, headers=auth_headers(admin))
    assert response.status_code == 400

    response = client.patch(f"{API}/admin/config", json={"map_max_points": 500}, headers=auth_headers(admin))
    assert response.status_code == 200
    assert response.json()["map_max_points"] == 500

    response = client.get(f"{API}/admin/config", headers=auth_headers(supervisor))
    assert response.status_code == 403

    response = client.get(f"{API}/admin/users", params={"role": "OPERATOR"}, headers=auth_headers(supervisor))
    assert response.status_code == 200
    assert [u["id"] for u in response.json()] == [str(operator.id)]

    response = client.get(f"{API}/admin/users", headers=auth_headers(operator))
    assert response.status_code == 403

    response = client.patch(f"{API}/admin/users/{admin.id}", json={"is_active": False}, headers=auth_headers(admin))
    assert response.status_code == 400

    response = client.patch(f"{API}/admin/users/{operator.id}", json={"role": "SUPERVISOR"}, headers=auth_headers(admin))
    assert response.status_code == 200
    assert response.json()["role"] == "SUPERVISOR"

    response = client.get(f"{API}/admin/audit-logs", headers=auth_headers(admin))
    assert {log["action"] for log in response.json()} == {"admin.config.update", "admin.user.update"}


def test_inactive_user_token_is_rejected(client, seed_user):
    operator = seed_user(UserRole.OPERATOR, is_active=False)
    response = client.get(f"{API}/admin/reports", headers=auth_headers(operator))
    assert response.status_code == 400


def test_guest_reads_events_and_evidence_with_email(client, seed_user):
    operator = seed_user(UserRole.OPERATOR)
    report = create_report(client, reporter_email="guest@example.com")
    client.post(
        f"{API}/reports/{report['id']}/evidence",
        data={"type": "BEFORE"},
        files=[("files", ("before.png", io.BytesIO(PNG_BYTES), "image/png"))],
        headers=auth_headers(operator),
    )

    for path in ("events", "evidence"):
        url = f"{API}/reports/{report['id']}/{path}"
        response = client.get(url, params={"email": "Guest@example.com"})
        assert response.status_code == 200, response.text
        assert len(response.json()) >= 1

        assert client.get(url, params={"email": "other@example.com"}).status_code == 403
        assert client.get(url).status_code == 400
