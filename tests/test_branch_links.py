from datetime import datetime, timedelta

from familytree.core.branch_links import TOKEN_ALPHABET, TOKEN_LENGTH, generate_token
from familytree.models.branch_entry_link import BranchEntryLink
from familytree.models.pending_member import PendingMember


def _create(client, headers, **overrides):
    payload = {"branchHeadId": "P002"}
    payload.update(overrides)
    res = client.post("/api/admin/branch-links", json=payload, headers=headers)
    assert res.status_code == 200, res.text
    return res.json()


def test_generated_tokens_use_the_alphabet():
    token = generate_token()

    assert len(token) == TOKEN_LENGTH
    assert set(token) <= set(TOKEN_ALPHABET)


def test_create_defaults_from_branch_head(client, family, admin_headers):
    body = _create(client, admin_headers)

    link = body["link"]
    assert body["created"] is True
    assert link["branchName"] == "فرع أ"
    assert link["branchHeadName"] == "محمد"
    assert link["useCount"] == 0
    assert link["url"].endswith(f"/add-branch/{link['token']}")


def test_active_link_is_reused(client, family, admin_headers):
    first = _create(client, admin_headers)["link"]
    second = _create(client, admin_headers)

    assert second["created"] is False
    assert second["link"]["id"] == first["id"]


def test_unknown_branch_head_is_404(client, family, admin_headers):
    res = client.post("/api/admin/branch-links", json={"branchHeadId": "P404"}, headers=admin_headers)

    assert res.status_code == 404


def test_branch_leader_scoped_to_own_branch(client, family, branch_leader_headers, admin_headers):
    _create(client, admin_headers, branchHeadId="P003")

    res = client.post("/api/admin/branch-links", json={"branchHeadId": "P003"}, headers=branch_leader_headers)
    assert res.status_code == 403

    _create(client, branch_leader_headers)
    links = client.get("/api/admin/branch-links", headers=branch_leader_headers).json()["links"]
    assert [link["branchName"] for link in links] == ["فرع أ"]


def test_patch_and_delete(client, family, admin_headers):
    link = _create(client, admin_headers)["link"]

    res = client.patch(f"/api/admin/branch-links/{link['id']}", json={"isActive": False}, headers=admin_headers)
    assert res.json()["link"]["isActive"] is False
    assert client.get(f"/api/branch-entry/{link['token']}").status_code == 404

    assert client.delete(f"/api/admin/branch-links/{link['id']}", headers=admin_headers).status_code == 200
    assert client.patch(f"/api/admin/branch-links/{link['id']}", json={"isActive": True},
                        headers=admin_headers).status_code == 404


# ============================================================
# PUBLIC ENTRY
# ============================================================

def test_open_link_returns_branch_info(client, family, admin_headers):
    link = _create(client, admin_headers, maxUses=2)["link"]

    res = client.get(f"/api/branch-entry/{link['token']}")

    assert res.status_code == 200
    branch = res.json()["branch"]
    assert branch["branchHeadId"] == "P002"
    assert branch["headGeneration"] == 2
    assert branch["remainingUses"] == 2


def test_unknown_token_is_404(client):
    assert client.get("/api/branch-entry/doesnotexist").status_code == 404


def test_expired_link_is_410(client, family, admin_headers):
    link = _create(client, admin_headers, expiresAt=(datetime.utcnow() - timedelta(days=1)).isoformat())["link"]

    assert client.get(f"/api/branch-entry/{link['token']}").status_code == 410


def test_submission_defaults_from_head_and_counts_use(client, family, admin_headers, db):
    link = _create(client, admin_headers)["link"]

    res = client.post(f"/api/branch-entry/{link['token']}", json={"firstName": "فيصل", "gender": "Male"})

    assert res.status_code == 200, res.text
    pending = res.json()["pending"]
    assert pending["submittedVia"] == link["token"]
    assert pending["branch"] == "فرع أ"
    assert pending["proposedFatherId"] == "P002"
    assert pending["generation"] == 3

    db.expire_all()
    assert db.get(BranchEntryLink, link["id"]).use_count == 1


def test_exhausted_link_refuses_submissions(client, family, admin_headers, db):
    link = _create(client, admin_headers, maxUses=1)["link"]
    url = f"/api/branch-entry/{link['token']}"

    assert client.post(url, json={"firstName": "فيصل", "gender": "Male"}).status_code == 200
    res = client.post(url, json={"firstName": "تركي", "gender": "Male"})

    assert res.status_code == 410
    db.expire_all()
    assert db.query(PendingMember).count() == 1
