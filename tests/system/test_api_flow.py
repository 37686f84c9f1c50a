"""
System tests: the HTTP API end to end.

Users are seeded directly, everything else goes through the API so
routing, auth, schemas and the error mapping are exercised together.
"""

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from thesis_portal.kernel.models import UserRole
from thesis_portal.main import app

SUBMISSION = {
    "title": "Distributed Consensus in Practice",
    "abstract": "A study of consensus protocols.",
    "keywords": ["consensus", "raft"],
    "department": "Computer Science",
    "year": 2026,
    "semester": "Fall",
    "file_url": "https://files.university.test/thesis.pdf",
    "file_name": "thesis.pdf",
    "file_size": 2048,
}


@pytest_asyncio.fixture
async def client(db_engine):
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client


@pytest_asyncio.fixture
async def people(db_session, make_user):
    users = {
        "student": await make_user(UserRole.STUDENT, full_name="Alice Student"),
        "faculty": await make_user(UserRole.FACULTY, full_name="Dr. Faculty"),
        "other_faculty": await make_user(UserRole.FACULTY, full_name="Dr. Other"),
        "admin": await make_user(UserRole.ADMIN, full_name="Admin User"),
    }
    await db_session.commit()
    return users


@pytest.mark.asyncio
async def test_health(client):
    response = await client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"
    assert "X-Request-ID" in response.headers


@pytest.mark.asyncio
async def test_requires_token(client):
    response = await client.get("/api/v1/notifications")
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_invalid_token(client):
    response = await client.get(
        "/api/v1/notifications", headers={"Authorization": "Bearer not-a-token"}
    )
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_role_guard(client, people, auth_headers):
    response = await client.get(
        "/api/v1/supervision/requests/pending", headers=auth_headers(people["student"])
    )
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_full_thesis_flow(client, people, auth_headers):
    student, faculty = people["student"], people["faculty"]
    as_student, as_faculty = auth_headers(student), auth_headers(faculty)

    # Submitting before anything else is refused with the denial reason
    response = await client.post(
        "/api/v1/submissions",
        json={**SUBMISSION, "submission_type": "P1"},
        headers={**as_student, "X-Request-ID": "req-123"},
    )
    assert response.status_code == 400
    body = response.json()
    assert body["code"] == "ineligible_submission"
    assert body["reason"] == "no supervisor"
    assert body["request_id"] == "req-123"
    assert response.headers["X-Request-ID"] == "req-123"

    # Supervision: ask two faculty, the first accepts
    for faculty_user in (faculty, people["other_faculty"]):
        response = await client.post(
            "/api/v1/supervision/requests",
            json={"faculty_id": str(faculty_user.id)},
            headers=as_student,
        )
        assert response.status_code == 201

    owner = {"kind": "individual", "id": str(student.id)}
    response = await client.post(
        "/api/v1/supervision/requests/respond",
        json={"owner": owner, "accept": True},
        headers=as_faculty,
    )
    assert response.status_code == 200
    assert response.json()["status"] == "accepted"

    response = await client.get(
        "/api/v1/supervision/requests/pending", headers=auth_headers(people["other_faculty"])
    )
    assert response.json() == []

    response = await client.get(f"/api/v1/faculty/{faculty.id}/seats", headers=as_faculty)
    assert response.json()["used"] == 1

    # Registration
    response = await client.post(
        "/api/v1/registrations",
        json={"title": "Consensus", "description": "Raft and Paxos"},
        headers=as_student,
    )
    assert response.status_code == 201
    response = await client.post(
        "/api/v1/registrations/review",
        json={"student_id": str(student.id), "approve": True},
        headers=as_faculty,
    )
    assert response.status_code == 200
    response = await client.get("/api/v1/registrations/me", headers=as_student)
    assert response.json()["status"] == "approved"

    # P2 before P1 is approved
    response = await client.post(
        "/api/v1/submissions", json={**SUBMISSION, "submission_type": "P2"}, headers=as_student
    )
    assert response.status_code == 400
    assert response.json()["reason"] == "P1 not approved"

    # P1: rejected with resubmission allowed, then resubmitted and approved
    response = await client.post(
        "/api/v1/submissions", json={**SUBMISSION, "submission_type": "P1"}, headers=as_student
    )
    assert response.status_code == 201
    p1 = response.json()
    assert p1["status"] == "pending"
    assert p1["supervisor_id"] == str(faculty.id)

    response = await client.post(
        f"/api/v1/submissions/{p1['id']}/review",
        json={"status": "rejected", "allow_resubmission": True},
        headers=as_faculty,
    )
    assert response.status_code == 200
    assert response.json()["can_resubmit"] is True

    response = await client.post(
        f"/api/v1/submissions/{p1['id']}/review",
        json={"status": "approved"},
        headers=as_faculty,
    )
    assert response.status_code == 409
    assert response.json()["code"] == "already_reviewed"

    response = await client.post(
        f"/api/v1/submissions/{p1['id']}/resubmit",
        json={**SUBMISSION, "title": "Revised"},
        headers=as_student,
    )
    assert response.status_code == 201
    revised = response.json()
    assert revised["is_resubmission"] is True
    assert revised["original_submission_id"] == p1["id"]

    response = await client.get("/api/v1/submissions/pending-review", headers=as_faculty)
    assert [s["id"] for s in response.json()] == [revised["id"]]

    response = await client.post(
        f"/api/v1/submissions/{revised['id']}/review",
        json={"status": "approved"},
        headers=as_faculty,
    )
    assert response.json()["status"] == "approved"

    response = await client.get(f"/api/v1/students/{student.id}/progress", headers=as_faculty)
    progress = response.json()
    assert [(p["submission_type"], p["status"]) for p in progress] == [("P1", "approved")]

    # P2 is now open
    response = await client.post(
        "/api/v1/submissions", json={**SUBMISSION, "submission_type": "P2"}, headers=as_student
    )
    assert response.status_code == 201

    response = await client.get("/api/v1/submissions/mine", headers=as_student)
    assert len(response.json()) == 3

    response = await client.get("/api/v1/notifications", headers=as_student)
    inbox = response.json()
    types = {n["type"] for n in inbox["items"]}
    assert {"supervisor_response", "thesis_rejected", "thesis_approved"} <= types
    assert inbox["unread_count"] == len(inbox["items"])


@pytest.mark.asyncio
async def test_other_faculty_cannot_review(client, people, auth_headers):
    student, faculty = people["student"], people["faculty"]
    as_student, as_faculty = auth_headers(student), auth_headers(faculty)

    await client.post("/api/v1/supervision/requests", json={"faculty_id": str(faculty.id)}, headers=as_student)
    await client.post(
        "/api/v1/supervision/requests/respond",
        json={"owner": {"kind": "individual", "id": str(student.id)}, "accept": True},
        headers=as_faculty,
    )
    await client.post("/api/v1/registrations", json={"title": "T", "description": "D"}, headers=as_student)
    await client.post(
        "/api/v1/registrations/review",
        json={"student_id": str(student.id), "approve": True},
        headers=as_faculty,
    )
    response = await client.post(
        "/api/v1/submissions", json={**SUBMISSION, "submission_type": "P1"}, headers=as_student
    )
    submission_id = response.json()["id"]

    response = await client.post(
        f"/api/v1/submissions/{submission_id}/review",
        json={"status": "approved"},
        headers=auth_headers(people["other_faculty"]),
    )
    assert response.status_code == 403
    assert response.json()["code"] == "not_authorized"

    response = await client.get(
        f"/api/v1/submissions/{submission_id}", headers=auth_headers(people["other_faculty"])
    )
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_capacity_exceeded_over_http(client, people, auth_headers):
    faculty, admin = people["faculty"], people["admin"]
    response = await client.put(
        f"/api/v1/faculty/{faculty.id}/seats/capacity",
        json={"seat_capacity": 0},
        headers=auth_headers(admin),
    )
    assert response.status_code == 200
    assert response.json()["capacity"] == 0

    student = people["student"]
    await client.post(
        "/api/v1/supervision/requests",
        json={"faculty_id": str(faculty.id)},
        headers=auth_headers(student),
    )
    response = await client.post(
        "/api/v1/supervision/requests/respond",
        json={"owner": {"kind": "individual", "id": str(student.id)}, "accept": True},
        headers=auth_headers(faculty),
    )
    assert response.status_code == 409
    assert response.json()["code"] == "capacity_exceeded"

    # The failed accept left the request pending
    response = await client.get("/api/v1/supervision/requests/pending", headers=auth_headers(faculty))
    assert len(response.json()) == 1


@pytest.mark.asyncio
async def test_validation_errors(client, people, auth_headers):
    response = await client.post(
        "/api/v1/submissions",
        json={**SUBMISSION, "submission_type": "P4"},
        headers=auth_headers(people["student"]),
    )
    assert response.status_code == 422
    assert response.json()["code"] == "validation_error"


@pytest.mark.asyncio
async def test_comments_supervisees_and_progress_sync(client, people, auth_headers):
    student, faculty, admin = people["student"], people["faculty"], people["admin"]
    as_student, as_faculty = auth_headers(student), auth_headers(faculty)

    await client.post("/api/v1/supervision/requests", json={"faculty_id": str(faculty.id)}, headers=as_student)
    await client.post(
        "/api/v1/supervision/requests/respond",
        json={"owner": {"kind": "individual", "id": str(student.id)}, "accept": True},
        headers=as_faculty,
    )
    await client.post("/api/v1/registrations", json={"title": "T", "description": "D"}, headers=as_student)
    await client.post(
        "/api/v1/registrations/review",
        json={"student_id": str(student.id), "approve": True},
        headers=as_faculty,
    )

    response = await client.get(f"/api/v1/faculty/{faculty.id}/supervisees", headers=as_faculty)
    assert response.status_code == 200
    assert response.json()[0]["owner"] == {"kind": "individual", "id": str(student.id)}
    assert response.json()[0]["label"] == "Alice Student"
    response = await client.get(
        f"/api/v1/faculty/{faculty.id}/supervisees", headers=auth_headers(people["other_faculty"])
    )
    assert response.status_code == 403

    response = await client.post(
        "/api/v1/submissions", json={**SUBMISSION, "submission_type": "P1"}, headers=as_student
    )
    submission_id = response.json()["id"]

    response = await client.post(
        f"/api/v1/submissions/{submission_id}/comments",
        json={"comment": "Dr. Faculty: Please add a related work section"},
        headers=as_faculty,
    )
    assert response.status_code == 201
    assert response.json()["comment"] == "Please add a related work section"

    response = await client.post(
        f"/api/v1/submissions/{submission_id}/comments",
        json={"comment": "Regards, Alice Student"},
        headers=as_student,
    )
    assert response.status_code == 400
    assert response.json()["code"] == "invalid_input"

    response = await client.get(f"/api/v1/submissions/{submission_id}/comments", headers=as_student)
    assert [c["comment"] for c in response.json()] == ["Please add a related work section"]

    await client.post(
        f"/api/v1/submissions/{submission_id}/review", json={"status": "approved"}, headers=as_faculty
    )
    response = await client.post("/api/v1/students/progress/sync", headers=auth_headers(admin))
    assert response.status_code == 200
    assert response.json() == {"submissions": 1, "synced": 1, "failed": 0}

    response = await client.post("/api/v1/students/progress/sync", headers=as_faculty)
    assert response.status_code == 403
