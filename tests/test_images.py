from pathlib import Path

import pytest

from familytree.config import settings
from familytree.models.image import MemberPhoto, PendingImage

PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 64


@pytest.fixture(autouse=True)
def media_dir(tmp_path, monkeypatch):
    monkeypatch.setattr(settings, "LOCAL_MEDIA_PATH", str(tmp_path))
    return tmp_path


def _upload(client, content=PNG_BYTES, content_type="image/png", **fields):
    data = {"uploadedByName": "أحمد", "category": "memory"}
    data.update(fields)
    return client.post(
        "/api/images/upload",
        data=data,
        files={"file": ("photo.png", content, content_type)},
    )


def _stored_file(media_dir, url_path):
    return media_dir / url_path[len("/media/"):]


def _file_path_of(db, image_id):
    db.expire_all()
    return db.get(PendingImage, image_id).file_path


# ============================================================
# UPLOAD
# ============================================================

def test_upload_stores_file_and_queues_image(client, media_dir, db):
    res = _upload(client, title="<b>رحلة</b>", year="1995", memberId="P002", taggedMemberIds="P001, P003")

    assert res.status_code == 200, res.text
    image = res.json()["image"]
    assert image["reviewStatus"] == "PENDING"
    assert image["title"] == "رحلة"
    assert image["fileSize"] == len(PNG_BYTES)
    assert image["filePath"].startswith(settings.BASE_URL)

    path = _file_path_of(db, image["id"])
    assert _stored_file(media_dir, path).read_bytes() == PNG_BYTES
    assert db.get(PendingImage, image["id"]).tagged_member_ids == '["P001", "P003"]'


@pytest.mark.parametrize(
    "kwargs",
    [
        {"uploadedByName": ""},
        {"category": "selfie"},
        {"year": "1700"},
        {"content_type": "application/pdf"},
        {"content": b""},
    ],
)
def test_upload_rejects_bad_input(client, kwargs):
    assert _upload(client, **kwargs).status_code == 400


def test_upload_rejects_oversized_file(client):
    res = _upload(client, content=b"\x00" * (5 * 1024 * 1024 + 1))

    assert res.status_code == 400


# ============================================================
# MODERATION
# ============================================================

def test_queue_requires_reviewer_permission(client, member_headers):
    assert client.get("/api/images/pending", headers=member_headers).status_code == 403


def test_queue_filters_and_stats(client, admin_headers):
    _upload(client, category="historical")
    _upload(client, category="memory")

    res = client.get(
        "/api/images/pending",
        params={"status": "PENDING", "category": "historical", "includeStats": "true"},
        headers=admin_headers,
    )

    body = res.json()
    assert body["total"] == 1
    assert body["hasMore"] is False
    assert body["stats"]["pendingCount"] == 2


def test_queue_rejects_unknown_status(client, admin_headers):
    assert client.get("/api/images/pending", params={"status": "LOST"}, headers=admin_headers).status_code == 400


def test_approve_creates_member_photo(client, admin_headers, db):
    image_id = _upload(client, category="profile", memberId="P002").json()["image"]["id"]

    res = client.patch(f"/api/images/pending/{image_id}", json={"action": "approve"}, headers=admin_headers)

    assert res.status_code == 200, res.text
    photo = res.json()["photo"]
    assert photo["isProfilePhoto"] is True
    assert photo["isFamilyAlbum"] is False
    assert photo["originalPendingId"] == image_id

    db.expire_all()
    image = db.get(PendingImage, image_id)
    assert image.review_status == "APPROVED"
    assert image.approved_photo_id == photo["id"]
    assert image.reviewed_by_name

    photos = client.get("/api/images/member/P002").json()["photos"]
    assert [p["id"] for p in photos] == [photo["id"]]


def test_approved_without_member_goes_to_album(client, admin_headers):
    image_id = _upload(client).json()["image"]["id"]
    client.patch(f"/api/images/pending/{image_id}", json={"action": "approve"}, headers=admin_headers)

    album = client.get("/api/images/gallery").json()

    assert album["total"] == 1
    assert album["photos"][0]["isFamilyAlbum"] is True


def test_reject_requires_notes(client, admin_headers, db):
    image_id = _upload(client).json()["image"]["id"]
    url = f"/api/images/pending/{image_id}"

    assert client.patch(url, json={"action": "reject"}, headers=admin_headers).status_code == 400
    db.expire_all()
    assert db.get(PendingImage, image_id).review_status == "PENDING"

    res = client.patch(url, json={"action": "reject", "reviewNotes": "غير واضحة"}, headers=admin_headers)
    assert res.status_code == 200
    assert res.json()["image"]["reviewStatus"] == "REJECTED"

    again = client.patch(url, json={"action": "approve"}, headers=admin_headers)
    assert again.status_code == 400


def test_delete_removes_file_unless_approved(client, admin_headers, media_dir, db):
    rejected_id = _upload(client).json()["image"]["id"]
    approved_id = _upload(client).json()["image"]["id"]
    rejected_path = _file_path_of(db, rejected_id)
    approved_path = _file_path_of(db, approved_id)
    client.patch(f"/api/images/pending/{approved_id}", json={"action": "approve"}, headers=admin_headers)

    assert client.delete(f"/api/images/pending/{rejected_id}", headers=admin_headers).status_code == 200
    assert client.delete(f"/api/images/pending/{approved_id}", headers=admin_headers).status_code == 200

    assert not _stored_file(media_dir, rejected_path).exists()
    assert _stored_file(media_dir, approved_path).exists()

    db.expire_all()
    assert db.query(MemberPhoto).one().original_pending_id is None
