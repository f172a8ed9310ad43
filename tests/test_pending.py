from familytree.core import pending as pending_module
from familytree.models.activity_log import ActivityLog
from familytree.models.change_history import ChangeHistory
from familytree.models.family_member import FamilyMember
from familytree.models.pending_member import PendingMember
from familytree.services.email import EmailResult


def _submit(client, **overrides):
    payload = {"firstName": "فهد", "gender": "Male", "proposedFatherId": "P002", "generation": 3, "branch": "فرع أ"}
    payload.update(overrides)
    return client.post("/api/admin/pending", json=payload)


# ============================================================
# PUBLIC SUBMISSION
# ============================================================

def test_submission_is_queued_and_sanitized(client, family):
    res = _submit(client, firstName="  <b>فهد</b>  ", city="<script>x</script>الرياض")

    assert res.status_code == 200
    pending = res.json()["pending"]
    assert pending["reviewStatus"] == "PENDING"
    assert "<" not in pending["firstName"]
    assert pending["firstName"].strip() == pending["firstName"]
    assert "<script>" not in pending["city"]


def test_submission_requires_first_name(client):
    assert _submit(client, firstName="   ").status_code == 422


def test_submission_is_rate_limited(client, family):
    for _ in range(3):
        assert _submit(client).status_code == 200

    res = _submit(client)

    assert res.status_code == 429
    assert int(res.headers["retry-after"]) > 0
    assert res.json()["retryAfter"] > 0


def test_rate_limit_is_per_client_ip(client, family):
    for _ in range(3):
        _submit(client)

    res = client.post(
        "/api/admin/pending",
        json={"firstName": "فهد", "gender": "Male"},
        headers={"X-Forwarded-For": "203.0.113.9"},
    )

    assert res.status_code == 200


# ============================================================
# REVIEW QUEUE
# ============================================================

def test_branch_leader_sees_only_own_branch(client, family, branch_leader_headers):
    _submit(client, branch="فرع أ")
    _submit(client, branch="فرع ب", proposedFatherId="P001", generation=2)

    res = client.get("/api/admin/pending", headers=branch_leader_headers)

    assert res.status_code == 200
    assert [p["branch"] for p in res.json()["pending"]] == ["فرع أ"]


def test_approve_creates_member(client, family, super_admin_headers, db):
    pending_id = _submit(client).json()["pending"]["id"]

    res = client.post(
        f"/api/admin/pending/{pending_id}",
        json={"action": "approve", "reviewNote": "ok"},
        headers=super_admin_headers,
    )

    assert res.status_code == 200, res.text
    member = res.json()["member"]
    assert member["id"] == "P005"
    assert member["fatherId"] == "P002"

    db.expire_all()
    pending = db.get(PendingMember, pending_id)
    assert pending.review_status == "APPROVED"
    assert pending.approved_member_id == "P005"
    assert db.get(FamilyMember, "P002").sons_count == 2
    assert db.query(ChangeHistory).filter_by(member_id="P005", change_type="CREATE").count() == 1
    assert db.query(ActivityLog).filter_by(action="PENDING_MEMBER_APPROVED").count() == 1


def test_approve_notifies_submitter(client, family, super_admin_headers, monkeypatch):
    sent = []
    monkeypatch.setattr(
        pending_module,
        "send_template_email",
        lambda to, template, data: sent.append((to, template, data)) or EmailResult(True, message_id="m1"),
    )
    pending_id = _submit(client, email="fahad@example.com").json()["pending"]["id"]

    client.post(f"/api/admin/pending/{pending_id}", json={"action": "approve"}, headers=super_admin_headers)

    assert len(sent) == 1
    to, template, data = sent[0]
    assert to == "fahad@example.com"
    assert template == "pending_approved"
    assert data["viewUrl"].endswith("/member/P005")


def test_reject_keeps_tree_unchanged(client, family, super_admin_headers, db):
    pending_id = _submit(client).json()["pending"]["id"]

    res = client.post(
        f"/api/admin/pending/{pending_id}",
        json={"action": "reject", "reviewNote": "مكرر"},
        headers=super_admin_headers,
    )

    assert res.status_code == 200
    db.expire_all()
    assert db.get(PendingMember, pending_id).review_status == "REJECTED"
    assert db.query(FamilyMember).count() == 4


def test_invalid_action_and_double_processing(client, family, super_admin_headers):
    pending_id = _submit(client).json()["pending"]["id"]
    url = f"/api/admin/pending/{pending_id}"

    assert client.post(url, json={"action": "maybe"}, headers=super_admin_headers).status_code == 400
    assert client.post(url, json={"action": "reject"}, headers=super_admin_headers).status_code == 200

    res = client.post(url, json={"action": "approve"}, headers=super_admin_headers)
    assert res.status_code == 400
    assert res.json()["error"] == "Already processed"


def test_branch_leader_cannot_review_other_branch(client, family, branch_leader_headers):
    pending_id = _submit(client, branch="فرع ب", proposedFatherId="P001", generation=2).json()["pending"]["id"]

    res = client.post(f"/api/admin/pending/{pending_id}", json={"action": "approve"}, headers=branch_leader_headers)

    assert res.status_code == 403


def test_delete_requires_admin(client, family, branch_leader_headers, admin_headers):
    pending_id = _submit(client).json()["pending"]["id"]

    assert client.delete(f"/api/admin/pending/{pending_id}", headers=branch_leader_headers).status_code == 403
    assert client.delete(f"/api/admin/pending/{pending_id}", headers=admin_headers).status_code == 200
    assert client.get(f"/api/admin/pending/{pending_id}", headers=admin_headers).status_code == 404
