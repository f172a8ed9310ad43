import json

from familytree.core.snapshots import BACKUP_FORMAT, restore_snapshot
from familytree.models.activity_log import ActivityLog
from familytree.models.family_member import FamilyMember
from familytree.models.snapshot import Snapshot


def _take(client, headers, name="نسخة"):
    res = client.post("/api/admin/snapshots", json={"name": name}, headers=headers)
    assert res.status_code == 200, res.text
    return res.json()["snapshot"]


def test_create_and_list(client, family, super_admin_headers):
    first = _take(client, super_admin_headers, "أولى")
    second = _take(client, super_admin_headers, "ثانية")

    assert first["memberCount"] == 4
    assert first["snapshotType"] == "MANUAL"

    res = client.get("/api/admin/snapshots", headers=super_admin_headers)
    assert [s["id"] for s in res.json()["snapshots"]] == [second["id"], first["id"]]


def test_member_role_cannot_list(client, member_headers):
    assert client.get("/api/admin/snapshots", headers=member_headers).status_code == 403


def test_detail_carries_tree_data(client, family, super_admin_headers):
    snapshot = _take(client, super_admin_headers)

    res = client.get(f"/api/admin/snapshots/{snapshot['id']}", headers=super_admin_headers)

    members = json.loads(res.json()["snapshot"]["treeData"])
    assert [m["id"] for m in members] == ["P001", "P002", "P003", "P004"]


def test_download_is_an_attachment(client, family, super_admin_headers):
    snapshot = _take(client, super_admin_headers, "backup")

    res = client.get(
        f"/api/admin/snapshots/{snapshot['id']}",
        params={"download": "true"},
        headers=super_admin_headers,
    )

    assert res.status_code == 200
    assert "attachment" in res.headers["content-disposition"]
    doc = res.json()
    assert doc["snapshotId"] == snapshot["id"]
    assert doc["memberCount"] == 4
    assert len(doc["members"]) == 4
    assert doc["metadata"]["format"] == BACKUP_FORMAT


def test_missing_snapshot_is_404(client, super_admin_headers):
    assert client.get("/api/admin/snapshots/nope", headers=super_admin_headers).status_code == 404


def test_restore_replaces_members(client, family, super_admin_headers, db):
    snapshot = _take(client, super_admin_headers)
    client.put("/api/admin/members/P004", json={"city": "الرياض"}, headers=super_admin_headers)
    client.post("/api/admin/members", json={"firstName": "جديد", "gender": "Male", "fatherId": "P001"},
                headers=super_admin_headers)

    res = client.post(
        f"/api/admin/snapshots/{snapshot['id']}",
        json={"action": "restore"},
        headers=super_admin_headers,
    )

    assert res.status_code == 200, res.text
    body = res.json()
    assert body["restoredCount"] == 4
    assert body["errors"] == []

    db.expire_all()
    assert db.query(FamilyMember).count() == 4
    assert db.get(FamilyMember, "P004").city is None
    assert db.get(FamilyMember, "P001").sons_count == 1

    pre_restore = db.get(Snapshot, body["preRestoreSnapshotId"])
    assert pre_restore.snapshot_type == "PRE_RESTORE"
    assert pre_restore.member_count == 5
    assert db.query(ActivityLog).filter(ActivityLog.action == "RESTORE_SNAPSHOT").count() == 1


def test_restore_with_bad_action_is_400(client, family, super_admin_headers):
    snapshot = _take(client, super_admin_headers)

    res = client.post(f"/api/admin/snapshots/{snapshot['id']}", json={"action": "wipe"}, headers=super_admin_headers)

    assert res.status_code == 400


def test_restore_with_malformed_data_is_400(client, family, super_admin_headers, db):
    snapshot = _take(client, super_admin_headers)
    db.get(Snapshot, snapshot["id"]).tree_data = "{not json"
    db.commit()

    res = client.post(
        f"/api/admin/snapshots/{snapshot['id']}",
        json={"action": "restore"},
        headers=super_admin_headers,
    )

    assert res.status_code == 400
    db.expire_all()
    assert db.query(FamilyMember).count() == 4


def test_restore_reports_unusable_rows(db, family, super_admin):
    snapshot = Snapshot(
        name="partial",
        tree_data=json.dumps([
            {"id": "P001", "firstName": "جد", "gender": "Male", "generation": 1},
            {"id": "P002", "firstName": "يتيم", "gender": "Male", "fatherId": "P900"},
            "garbage",
        ]),
        member_count=3,
        created_by=super_admin.id,
        created_by_name=super_admin.name_arabic,
    )
    db.add(snapshot)
    db.commit()

    result = restore_snapshot(db, snapshot, super_admin)

    assert result["restoredCount"] == 1
    assert len(result["errors"]) == 2


def test_only_super_admin_deletes(client, family, super_admin_headers, admin_headers):
    snapshot = _take(client, super_admin_headers)

    assert client.delete(f"/api/admin/snapshots/{snapshot['id']}", headers=admin_headers).status_code == 403
    assert client.delete(f"/api/admin/snapshots/{snapshot['id']}", headers=super_admin_headers).status_code == 200
