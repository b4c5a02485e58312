from datetime import timedelta

from app_models import utcnow
from app_utils.constants import ComplaintStatus, UserRole

FORM = {
    "title": "Garbage pile near the park",
    "description": "Garbage has not been collected for five days near the park gate",
    "category": "GARBAGE",
    "latitude": "12.9352",
    "longitude": "77.6245",
    "address": "Park Road, Koramangala 5th Block",
}


def test_create_complaint_with_image(client, make_user, auth_headers):
    citizen = make_user()

    response = client.post(
        "/api/complaints/create",
        data=FORM,
        files=[("images", ("photo.jpg", b"\xff\xd8\xff\xe0fakejpeg", "image/jpeg"))],
        headers=auth_headers(citizen),
    )

    assert response.status_code == 201
    body = response.json()
    assert body["status"] == "SUBMITTED"
    assert body["user_full_name"] == citizen.name
    assert body["is_duplicate"] is False

    image_ids = client.get(f"/api/complaints/{body['id']}/images").json()
    assert len(image_ids) == 1
    image = client.get(f"/api/complaints/images/{image_ids[0]}")
    assert image.status_code == 200
    assert image.headers["content-type"] == "image/jpeg"
    assert image.content == b"\xff\xd8\xff\xe0fakejpeg"


def test_create_complaint_rejects_non_image(client, make_user, auth_headers):
    citizen = make_user()

    response = client.post(
        "/api/complaints/create",
        data=FORM,
        files=[("images", ("notes.txt", b"hello", "text/plain"))],
        headers=auth_headers(citizen),
    )
    assert response.status_code == 400


def test_create_complaint_validation(client, make_user, auth_headers):
    citizen = make_user()

    response = client.post(
        "/api/complaints/create",
        data=dict(FORM, title="Short"),
        headers=auth_headers(citizen),
    )
    assert response.status_code == 422


def test_second_report_nearby_is_flagged_duplicate(client, make_user, auth_headers):
    first_reporter = make_user()
    second_reporter = make_user()

    first = client.post("/api/complaints/create", data=FORM, headers=auth_headers(first_reporter)).json()
    second = client.post(
        "/api/complaints/create",
        data=dict(FORM, latitude="12.9355", longitude="77.6248"),
        headers=auth_headers(second_reporter),
    ).json()

    assert second["is_duplicate"] is True
    assert second["original_complaint_id"] == first["id"]

    duplicates = client.get(f"/api/complaints/{first['id']}/duplicates", headers=auth_headers(first_reporter))
    assert duplicates.json()["total_duplicates"] == 1


def test_status_update_flow(client, make_user, make_complaint, auth_headers):
    citizen = make_user()
    staff = make_user(UserRole.STAFF)
    complaint = make_complaint(citizen)

    forbidden = client.post(
        f"/api/complaints/{complaint.id}/status",
        json={"status": "RESOLVED", "comment": "done"},
        headers=auth_headers(citizen),
    )
    assert forbidden.status_code == 403

    bad = client.post(
        f"/api/complaints/{complaint.id}/status",
        json={"status": "CLOSED", "comment": "done"},
        headers=auth_headers(staff),
    )
    assert bad.status_code == 400

    ok = client.post(
        f"/api/complaints/{complaint.id}/status",
        json={"status": "resolved", "comment": "Garbage cleared"},
        headers=auth_headers(staff),
    )
    assert ok.status_code == 200
    assert ok.json()["status"] == "RESOLVED"

    updates = client.get(f"/api/complaints/{complaint.id}/updates", headers=auth_headers(citizen)).json()
    assert updates[0]["comment"] == "Garbage cleared"
    assert updates[0]["updated_by_name"] == staff.name

    count = client.get("/api/notifications/count", headers=auth_headers(citizen)).json()
    assert count == {"count": 1}


def test_feedback_and_reopen_over_http(client, make_user, make_complaint, auth_headers):
    citizen = make_user()
    other = make_user()
    complaint = make_complaint(citizen, status=ComplaintStatus.RESOLVED)

    not_owner = client.post(
        f"/api/complaints/{complaint.id}/feedback", json={"rating": 1}, headers=auth_headers(other)
    )
    assert not_owner.status_code == 403

    rated = client.post(
        f"/api/complaints/{complaint.id}/feedback",
        json={"rating": 1, "feedback": "Still dirty"},
        headers=auth_headers(citizen),
    )
    assert rated.status_code == 200

    reopened = client.post(
        f"/api/complaints/{complaint.id}/reopen",
        json={"reopen_reason": "Garbage is back"},
        headers=auth_headers(citizen),
    )
    assert reopened.status_code == 200
    assert reopened.json()["status"] == "IN_PROGRESS"
    assert reopened.json()["reopened"] is True

    again = client.post(
        f"/api/complaints/{complaint.id}/reopen",
        json={"reopen_reason": "Again"},
        headers=auth_headers(citizen),
    )
    assert again.status_code == 409


def test_listings_and_statistics(client, make_user, make_complaint, auth_headers):
    citizen = make_user()
    staff = make_user(UserRole.STAFF)
    now = utcnow()
    make_complaint(citizen, created_at=now - timedelta(hours=2))
    make_complaint(citizen, category="GARBAGE", created_at=now - timedelta(hours=1))

    mine = client.get("/api/complaints/my", headers=auth_headers(citizen)).json()
    assert mine["total_elements"] == 2
    assert mine["content"][0]["category"] == "GARBAGE"

    public = client.get("/api/complaints/public/recent?size=1").json()
    assert public["total_pages"] == 2

    by_category = client.get("/api/complaints/category/ROADS", headers=auth_headers(citizen)).json()
    assert by_category["total_elements"] == 1

    bad_sort = client.get("/api/complaints/?sortBy=password", headers=auth_headers(citizen))
    assert bad_sort.status_code == 400

    assert client.get("/api/complaints/statistics", headers=auth_headers(citizen)).status_code == 403
    stats = client.get("/api/complaints/statistics", headers=auth_headers(staff)).json()
    assert stats["total_complaints"] == 2


def test_missing_complaint_is_404(client, make_user, auth_headers):
    citizen = make_user()
    response = client.get("/api/complaints/9999", headers=auth_headers(citizen))
    assert response.status_code == 404
    assert response.json()["status"] == "error"


def test_admin_map_data_and_manual_escalation(client, make_user, make_complaint, auth_headers):
    citizen = make_user()
    admin = make_user(UserRole.ADMIN)
    now = utcnow()
    make_complaint(citizen, created_at=now - timedelta(hours=80), due_date=now - timedelta(hours=1))

    mapdata = client.get(
        "/api/admin/complaints/mapdata?minLat=12&maxLat=13&category=roads", headers=auth_headers(admin)
    )
    assert mapdata.status_code == 200
    assert len(mapdata.json()) == 1

    run = client.post("/api/admin/escalation/run", headers=auth_headers(admin)).json()
    assert run == {"found": 1, "escalated": 1, "failed": 0, "skipped": False}

    escalated = client.get("/api/admin/escalated", headers=auth_headers(admin)).json()
    assert escalated["total_elements"] == 1


def test_notification_endpoints(client, make_user, auth_headers, db):
    from services import notification_service

    user = make_user()
    other = make_user()
    note = notification_service.create_notification(db, user, "Your complaint was updated")

    listing = client.get("/api/notifications/", headers=auth_headers(user)).json()
    assert listing["content"][0]["message"] == "Your complaint was updated"

    assert client.post(f"/api/notifications/{note.id}/read", headers=auth_headers(other)).status_code == 403
    assert client.post(f"/api/notifications/{note.id}/read", headers=auth_headers(user)).json()["is_read"] is True

    notification_service.create_notification(db, user, "Another one")
    assert client.post("/api/notifications/read-all", headers=auth_headers(user)).status_code == 200
    assert client.get("/api/notifications/count", headers=auth_headers(user)).json() == {"count": 0}
