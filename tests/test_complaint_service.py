from datetime import timedelta

import pytest

from app_models import Notification, utcnow
from app_utils.constants import ComplaintStatus, NotificationType, UserRole
from app_utils.exceptions import ForbiddenError, InvalidInputError, InvalidStateError, NotFoundError
from app_utils import geo
from config import COMPLAINT_SLA_HOURS
from schemas import ComplaintCreate
from services import complaint_service


def _data(**overrides):
    fields = dict(
        title="Streetlight not working",
        description="The streetlight outside house 42 has been off for a week",
        category="ELECTRICITY",
        latitude=12.95,
        longitude=77.60,
    )
    fields.update(overrides)
    return ComplaintCreate(**fields)


# ---------- create ----------
def test_create_sets_defaults_images_and_initial_update(db, make_user):
    citizen = make_user()

    complaint = complaint_service.create_complaint(
        db, citizen, _data(address="12th Main, Indiranagar"),
        images=[(b"\x89PNG...", "image/png", "photo.png")],
    )

    assert complaint.status == ComplaintStatus.SUBMITTED
    assert complaint.due_date - complaint.created_at == timedelta(hours=COMPLAINT_SLA_HOURS)
    assert complaint.escalated is False
    assert len(complaint.images) == 1
    assert [u.comment for u in complaint.updates] == ["Created"]
    assert complaint.updates[0].updated_by == citizen.id


def test_create_rejects_non_image_upload(db, make_user):
    citizen = make_user()

    with pytest.raises(InvalidInputError):
        complaint_service.create_complaint(
            db, citizen, _data(), images=[(b"%PDF-1.4", "application/pdf", "report.pdf")]
        )


def test_create_fills_address_from_geocoder(db, make_user, monkeypatch):
    citizen = make_user()
    monkeypatch.setattr(complaint_service, "reverse_geocode", lambda lat, lng: "Koramangala, Bengaluru")

    complaint = complaint_service.create_complaint(db, citizen, _data())
    assert complaint.address == "Koramangala, Bengaluru"


def test_create_keeps_null_address_when_geocoder_fails(db, make_user, monkeypatch):
    citizen = make_user()
    monkeypatch.setattr(geo, "GEOCODING_ENABLED", True)

    def boom(*args, **kwargs):
        raise geo.requests.ConnectionError("offline")

    monkeypatch.setattr(geo.requests, "get", boom)

    complaint = complaint_service.create_complaint(db, citizen, _data())
    assert complaint.address is None


# ---------- status / assign / comment ----------
def test_update_status_records_history_and_notifies(db, make_user, make_complaint):
    citizen = make_user()
    staff = make_user(UserRole.STAFF)
    complaint = make_complaint(citizen)

    updated = complaint_service.update_status(db, staff, complaint.id, "in_progress", "Crew dispatched")

    assert updated.status == ComplaintStatus.IN_PROGRESS
    last = updated.updates[-1]
    assert (last.updated_by, last.status, last.comment) == (staff.id, ComplaintStatus.IN_PROGRESS, "Crew dispatched")
    note = db.query(Notification).filter(Notification.user_id == citizen.id).one()
    assert note.type == NotificationType.STATUS_CHANGE


def test_update_status_keeps_escalated_flag_consistent(db, make_user, make_complaint):
    citizen = make_user()
    admin = make_user(UserRole.ADMIN)
    complaint = make_complaint(citizen)

    escalated = complaint_service.update_status(db, admin, complaint.id, "ESCALATED", "Manual escalation")
    assert escalated.escalated is True

    resolved = complaint_service.update_status(db, admin, complaint.id, "RESOLVED", "Fixed")
    assert resolved.escalated is False


def test_update_status_rejects_unknown_status_and_citizens(db, make_user, make_complaint):
    citizen = make_user()
    staff = make_user(UserRole.STAFF)
    complaint = make_complaint(citizen)

    with pytest.raises(InvalidInputError):
        complaint_service.update_status(db, staff, complaint.id, "CLOSED", "Done")
    with pytest.raises(ForbiddenError):
        complaint_service.update_status(db, citizen, complaint.id, "RESOLVED", "Done")
    with pytest.raises(NotFoundError):
        complaint_service.update_status(db, staff, 9999, "RESOLVED", "Done")


def test_assign_complaint_notifies_assignee(db, make_user, make_complaint):
    citizen = make_user()
    admin = make_user(UserRole.ADMIN)
    staff = make_user(UserRole.STAFF)
    complaint = make_complaint(citizen)

    assigned = complaint_service.assign_complaint(db, admin, complaint.id, staff.id)

    assert assigned.assigned_to == staff.id
    note = db.query(Notification).filter(Notification.user_id == staff.id).one()
    assert note.type == NotificationType.ASSIGNMENT

    with pytest.raises(InvalidInputError):
        complaint_service.assign_complaint(db, admin, complaint.id, citizen.id)


def test_comment_notifies_owner_but_not_commenter(db, make_user, make_complaint):
    citizen = make_user()
    staff = make_user(UserRole.STAFF)
    complaint = make_complaint(citizen, assigned_to=staff.id)

    complaint_service.add_comment(db, staff, complaint.id, "We will fix this by tomorrow morning at the latest")

    owner_note = db.query(Notification).filter(Notification.user_id == citizen.id).one()
    assert owner_note.type == NotificationType.COMMENT
    assert owner_note.message.endswith("We will fix this by tomorro...")
    assert db.query(Notification).filter(Notification.user_id == staff.id).count() == 0


# ---------- feedback ----------
def test_owner_can_rate_resolved_complaint(db, make_user, make_complaint):
    citizen = make_user()
    staff = make_user(UserRole.STAFF)
    complaint = make_complaint(citizen, status=ComplaintStatus.RESOLVED, assigned_to=staff.id)

    rated = complaint_service.add_feedback(db, citizen, complaint.id, 5, "Quick fix, thanks")

    assert (rated.rating, rated.feedback) == (5, "Quick fix, thanks")
    assert db.query(Notification).filter(Notification.user_id == staff.id).count() == 1


@pytest.mark.parametrize("status", list(ComplaintStatus))
def test_non_owner_feedback_rejected_regardless_of_status(db, make_user, make_complaint, status):
    owner = make_user()
    other = make_user()
    complaint = make_complaint(owner, status=status)

    with pytest.raises(ForbiddenError):
        complaint_service.add_feedback(db, other, complaint.id, 3)


def test_feedback_requires_resolved(db, make_user, make_complaint):
    citizen = make_user()
    complaint = make_complaint(citizen, status=ComplaintStatus.IN_PROGRESS)

    with pytest.raises(InvalidStateError):
        complaint_service.add_feedback(db, citizen, complaint.id, 4)


def test_feedback_rating_out_of_range(db, make_user, make_complaint):
    citizen = make_user()
    complaint = make_complaint(citizen, status=ComplaintStatus.RESOLVED)

    with pytest.raises(InvalidInputError):
        complaint_service.add_feedback(db, citizen, complaint.id, 6)


# ---------- reopen ----------
@pytest.mark.parametrize("rating", [None, 1, 2])
def test_reopen_poorly_rated_resolution(db, make_user, make_complaint, rating):
    citizen = make_user()
    admin = make_user(UserRole.ADMIN)
    complaint = make_complaint(citizen, status=ComplaintStatus.RESOLVED, rating=rating)

    reopened = complaint_service.reopen_complaint(db, citizen, complaint.id, "Pothole is back after the rain")

    assert reopened.status == ComplaintStatus.IN_PROGRESS
    assert reopened.reopened is True
    assert reopened.reopen_reason == "Pothole is back after the rain"
    assert reopened.updates[-1].comment == "Complaint reopened: Pothole is back after the rain"
    assert db.query(Notification).filter(Notification.user_id == admin.id).count() == 1


@pytest.mark.parametrize("rating", [3, 4, 5])
def test_reopen_well_rated_resolution_rejected(db, make_user, make_complaint, rating):
    citizen = make_user()
    complaint = make_complaint(citizen, status=ComplaintStatus.RESOLVED, rating=rating)

    with pytest.raises(InvalidStateError):
        complaint_service.reopen_complaint(db, citizen, complaint.id, "Not fixed")

    db.refresh(complaint)
    assert complaint.status == ComplaintStatus.RESOLVED
    assert complaint.reopened is False


def test_reopen_requires_resolved_and_owner(db, make_user, make_complaint):
    citizen = make_user()
    other = make_user()
    open_complaint = make_complaint(citizen, status=ComplaintStatus.IN_PROGRESS)
    resolved = make_complaint(citizen, status=ComplaintStatus.RESOLVED)

    with pytest.raises(InvalidStateError):
        complaint_service.reopen_complaint(db, citizen, open_complaint.id, "Still broken")
    with pytest.raises(ForbiddenError):
        complaint_service.reopen_complaint(db, other, resolved.id, "Still broken")


# ---------- reads ----------
def test_list_complaints_sorting_and_paging(db, make_user, make_complaint):
    citizen = make_user()
    now = utcnow()
    for hours in (3, 2, 1):
        make_complaint(citizen, created_at=now - timedelta(hours=hours))

    page = complaint_service.list_complaints(db, 0, 2, "createdAt", "asc")
    assert page.total_elements == 3
    assert page.total_pages == 2
    assert page.content[0].created_at < page.content[1].created_at

    with pytest.raises(InvalidInputError):
        complaint_service.list_complaints(db, 0, 2, "hashed_password", "asc")


def test_rating_range_only_includes_resolved(db, make_user, make_complaint):
    citizen = make_user()
    make_complaint(citizen, status=ComplaintStatus.RESOLVED, rating=2)
    make_complaint(citizen, status=ComplaintStatus.RESOLVED, rating=5)
    make_complaint(citizen, status=ComplaintStatus.IN_PROGRESS, rating=1)

    page = complaint_service.list_by_rating_range(db, 1, 3, 0, 10)
    assert [c.rating for c in page.content] == [2]


def test_statistics(db, make_user, make_complaint):
    citizen = make_user()
    make_complaint(citizen, latitude=12.90001, longitude=77.58001)
    make_complaint(citizen, latitude=12.90002, longitude=77.58002, status=ComplaintStatus.RESOLVED)
    make_complaint(citizen, category="GARBAGE", latitude=13.0, longitude=77.7, status=ComplaintStatus.ESCALATED)

    stats = complaint_service.get_statistics(db)

    assert stats.total_complaints == 3
    assert stats.pending_complaints == 1
    assert stats.resolved_complaints == 1
    assert stats.rejected_complaints == 1
    assert stats.complaints_by_status == {
        "SUBMITTED": 1, "IN_PROGRESS": 0, "RESOLVED": 1, "ESCALATED": 1,
    }
    assert stats.complaints_by_category == {"ROADS": 2, "GARBAGE": 1}
    assert (stats.top_areas[0].lat, stats.top_areas[0].lng, stats.top_areas[0].count) == (12.9, 77.58, 2)


def test_map_data_filters(db, make_user, make_complaint):
    citizen = make_user()
    inside = make_complaint(citizen, category="Roads", latitude=12.9, longitude=77.58)
    make_complaint(citizen, category="GARBAGE", latitude=12.9, longitude=77.58)
    make_complaint(citizen, category="ROADS", latitude=28.6, longitude=77.2)

    results = complaint_service.get_map_data(
        db, min_lat=12.0, max_lat=13.5, min_lng=77.0, max_lng=78.0, category="roads", status="submitted"
    )
    assert [c.id for c in results] == [inside.id]

    with pytest.raises(InvalidInputError):
        complaint_service.get_map_data(db, status="OPEN")
