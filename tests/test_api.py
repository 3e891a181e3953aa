"""
Tests for the FastAPI application.

Each test builds its own app around a fresh repository, so nothing leaks
between tests.
"""

import pytest
from fastapi.testclient import TestClient

from src.api import create_app
from src.claims.schema import ClaimStatus
from src.notifications import BROADCAST_TOPIC, COORDINATORS_TOPIC, NotificationHub, NotificationSink
from src.uploads import LocalFileStore


# ============================================================================
# Fixtures
# ============================================================================


class RecordingSink(NotificationSink):
    def __init__(self):
        self.published = []

    def publish(self, topic, event):
        self.published.append((topic, event))
        return 1


@pytest.fixture
def sink():
    return RecordingSink()


@pytest.fixture
def file_store(tmp_path):
    return LocalFileStore(tmp_path / "uploads", max_size_bytes=1024)


@pytest.fixture
def client(settings, repo, sink, file_store):
    app = create_app(settings=settings, repository=repo, hub=sink, file_store=file_store)
    return TestClient(app)


def submit(client, name="Prof. Michael Chen", hours=18, rate=52, **extra):
    data = {"lecturer_name": name, "hours_worked": hours, "hourly_rate": rate, **extra}
    return client.post("/claims", data=data)


# ============================================================================
# Health
# ============================================================================


def test_root(client):
    response = client.get("/")
    assert response.status_code == 200
    assert response.json()["status"] == "running"


def test_health(client):
    data = client.get("/health").json()
    assert data["status"] == "healthy"
    assert data["claims"] == 0
    assert data["config"]["allow_terminal_overwrite"] is False


# ============================================================================
# Submission
# ============================================================================


def test_submit_claim(client, repo, sink):
    response = submit(client, notes="Tutorials")

    assert response.status_code == 200
    data = response.json()
    assert data["success"] is True
    assert data["claim_id"] == 1
    assert data["status"] == "pending"
    assert data["is_auto_approved"] is False
    assert "R936.00" in data["message"]
    assert repo.get_by_tracking_token(data["tracking_token"]).id == 1

    [(topic, event)] = sink.published
    assert topic == COORDINATORS_TOPIC
    assert event.claim_id == 1


def test_submit_small_claim_is_auto_approved(client):
    data = submit(client, hours=8, rate=45).json()
    assert data["status"] == "auto-approved"
    assert data["is_auto_approved"] is True
    assert data["flags"] == ["Small-claim auto-approval"]


def test_submit_invalid_claim(client, repo, sink):
    response = submit(client, name="", hours=0)

    assert response.status_code == 422
    data = response.json()
    assert data["success"] is False
    assert "Lecturer name is required" in data["errors"]
    assert "Hours worked must be greater than 0" in data["errors"]
    assert len(repo) == 0
    assert sink.published == []


def test_submit_inconsistent_total(client):
    response = submit(client, hours=12, rate=48, total_amount=600)
    assert response.status_code == 422
    assert response.json()["errors"] == ["Calculated amount (R576.00) doesn't match provided total (R600.00)"]


def test_submit_with_document(client, repo, file_store):
    response = client.post(
        "/claims",
        data={"lecturer_name": "Dr. Doc", "hours_worked": 20, "hourly_rate": 50},
        files={"upload": ("timesheet.pdf", b"%PDF-1.4", "application/pdf")},
    )

    assert response.status_code == 200
    claim = repo.get_by_id(response.json()["claim_id"])
    assert claim.file.file_name == "timesheet.pdf"
    assert file_store.resolve(claim.file.file_path).is_file()


def test_submit_with_bad_document(client, repo):
    response = client.post(
        "/claims",
        data={"lecturer_name": "Dr. Doc", "hours_worked": 20, "hourly_rate": 50},
        files={"upload": ("tool.exe", b"MZ", "application/octet-stream")},
    )

    assert response.status_code == 400
    assert response.json()["errors"][0].startswith("Invalid file type")
    assert len(repo) == 0


def test_document_is_removed_when_claim_is_invalid(client, file_store):
    response = client.post(
        "/claims",
        data={"lecturer_name": "", "hours_worked": 20, "hourly_rate": 50},
        files={"upload": ("timesheet.pdf", b"%PDF-1.4", "application/pdf")},
    )

    assert response.status_code == 422
    stored = list((file_store.base_dir / "claims").glob("*"))
    assert stored == []


@pytest.mark.parametrize("field", ["hours_worked", "hourly_rate"])
def test_non_finite_number_with_document(client, repo, file_store, field):
    data = {"lecturer_name": "Dr. N", "hours_worked": 20, "hourly_rate": 45, field: "nan"}

    response = client.post(
        "/claims",
        data=data,
        files={"upload": ("timesheet.pdf", b"%PDF-1.4", "application/pdf")},
    )

    assert response.status_code == 422
    assert response.json()["success"] is False
    assert list((file_store.base_dir / "claims").glob("*")) == []
    assert submit(client).json()["claim_id"] == 1


# ============================================================================
# Queries
# ============================================================================


def test_get_claim(client):
    claim_id = submit(client).json()["claim_id"]

    response = client.get(f"/claims/{claim_id}")

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["lecturer_name"] == "Prof. Michael Chen"
    assert data["total_amount"] == pytest.approx(936.0)
    assert data["progress"] == "Under Review"


def test_get_missing_claim(client):
    response = client.get("/claims/999")
    assert response.status_code == 404
    assert response.json() == {"success": False, "message": "Claim not found"}


def test_track_claim(client):
    token = submit(client).json()["tracking_token"]

    assert client.get(f"/claims/track/{token}").json()["data"]["id"] == 1
    assert client.get("/claims/track/nope").status_code == 404


def test_recent_claims(client, clock):
    for i in range(3):
        submit(client, name=f"Dr. Recent {i}")
        clock.advance(minutes=1)

    claims = client.get("/claims/recent", params={"count": 2}).json()["claims"]
    assert [c["id"] for c in claims] == [3, 2]


def test_list_claims_with_filter_and_sort(client):
    submit(client, name="Dr. Zed", hours=20, rate=50)
    submit(client, name="Dr. Abel", hours=8, rate=45)
    submit(client, name="Dr. Mid", hours=15, rate=50)

    data = client.get("/claims", params={"filter": "pending", "sort_by": "name"}).json()

    assert data["filter"] == "pending"
    assert [c["lecturer_name"] for c in data["claims"]] == ["Dr. Mid", "Dr. Zed"]


def test_lecturer_claims(client):
    submit(client, name="Dr. A")
    submit(client, name="Dr. B")

    claims = client.get("/lecturers/Dr. A/claims").json()["claims"]
    assert [c["lecturer_name"] for c in claims] == ["Dr. A"]


# ============================================================================
# Review
# ============================================================================


def test_approve_claim(client, sink):
    claim_id = submit(client).json()["claim_id"]
    sink.published.clear()

    response = client.post(f"/claims/{claim_id}/approve", json={"reviewer": "coordinator", "notes": "OK"})

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["status"] == "approved"
    assert data["reviewed_by"] == "coordinator"
    assert data["notes"].endswith("[Coordinator Note: OK]")
    assert [topic for topic, _ in sink.published] == [data["tracking_token"], BROADCAST_TOPIC]


def test_approve_without_body(client):
    claim_id = submit(client).json()["claim_id"]
    assert client.post(f"/claims/{claim_id}/approve").json()["data"]["status"] == "approved"


def test_approve_missing_claim(client):
    assert client.post("/claims/42/approve", json={}).status_code == 404


def test_approve_decided_claim_conflicts(client):
    claim_id = submit(client, hours=8, rate=45).json()["claim_id"]

    response = client.post(f"/claims/{claim_id}/approve", json={})

    assert response.status_code == 409
    data = response.json()
    assert data["success"] is False
    assert data["current_status"] == "auto-approved"


def test_reject_claim(client, repo, sink):
    claim_id = submit(client).json()["claim_id"]
    sink.published.clear()

    response = client.post(f"/claims/{claim_id}/reject", json={"reason": "  No timesheet ", "reviewer": "hr"})

    assert response.status_code == 200
    assert repo.get_by_id(claim_id).rejection_reason == "No timesheet"
    [(topic, event)] = sink.published
    assert event.status is ClaimStatus.REJECTED
    assert event.message == "Claim rejected: No timesheet"


def test_reject_requires_reason(client, repo):
    claim_id = submit(client).json()["claim_id"]

    response = client.post(f"/claims/{claim_id}/reject", json={"reason": "   "})

    assert response.status_code == 400
    assert response.json()["message"] == "Rejection reason is required"
    assert repo.get_by_id(claim_id).status is ClaimStatus.PENDING


def test_bulk_approve(client, repo):
    first = submit(client).json()["claim_id"]
    second = submit(client).json()["claim_id"]
    auto = submit(client, hours=8, rate=45).json()["claim_id"]

    response = client.post("/claims/bulk-approve", json={"claim_ids": [first, second, auto, 77], "reviewer": "hod"})

    assert response.status_code == 200
    data = response.json()
    assert data["approved_ids"] == [first, second]
    assert data["message"] == "Successfully approved 2 claims"
    assert repo.get_summary().approved_claims == 3


def test_bulk_approve_requires_selection(client):
    response = client.post("/claims/bulk-approve", json={"claim_ids": []})
    assert response.status_code == 400
    assert response.json()["message"] == "No claims selected"


# ============================================================================
# Dashboards
# ============================================================================


def test_dashboards(client):
    submit(client, name="Dr. A", hours=8, rate=45)
    submit(client, name="Dr. B")

    summary = client.get("/summary").json()
    assert summary["total_claims"] == 2
    assert summary["approved_claims"] == 1

    analysis = client.get("/analysis").json()
    assert analysis["auto_approval_rate"] == pytest.approx(0.5)
    assert analysis["average_processing_hours"] == pytest.approx(0.0)
    assert analysis["rule_frequency"]["Small-claim auto-approval"] == 1

    lecturers = client.get("/lecturers").json()["lecturers"]
    assert [l["lecturer_name"] for l in lecturers] == ["Dr. A", "Dr. B"]

    payments = client.get("/payments").json()
    assert payments["ready_for_payment"] == 1
    assert payments["total_amount"] == pytest.approx(360.0)

    months = client.get("/monthly").json()["months"]
    assert months[0]["period"] == "2024-03"


def test_seeded_app(settings, file_store):
    settings.seed_demo_data = True
    client = TestClient(create_app(settings=settings, file_store=file_store))

    assert client.get("/summary").json()["total_claims"] == 3


# ============================================================================
# WebSocket
# ============================================================================


def test_websocket_join_and_receive(settings, repo, file_store):
    hub = NotificationHub()
    client = TestClient(create_app(settings=settings, repository=repo, hub=hub, file_store=file_store))

    with client.websocket_connect("/ws") as ws:
        ws.send_json({"action": "join", "group": COORDINATORS_TOPIC})
        assert ws.receive_json() == {"joined": COORDINATORS_TOPIC}

        submit(client, name="Dr. Live")
        event = ws.receive_json()
        assert event["event_type"] == "NewClaimSubmitted"
        assert event["lecturer_name"] == "Dr. Live"

        ws.send_json({"action": "leave", "group": COORDINATORS_TOPIC})
        assert ws.receive_json() == {"left": COORDINATORS_TOPIC}


def test_websocket_rejects_bad_commands(settings, repo, file_store):
    client = TestClient(create_app(settings=settings, repository=repo, hub=NotificationHub(), file_store=file_store))

    with client.websocket_connect("/ws") as ws:
        ws.send_json({"action": "join"})
        assert ws.receive_json() == {"error": "group is required"}
        ws.send_json({"action": "shout", "group": "x"})
        assert ws.receive_json() == {"error": "Unknown action: shout"}
