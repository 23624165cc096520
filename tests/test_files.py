import pytest

from app.common.exceptions import BadRequestError
from app.files.storage import S3Storage, StorageError, get_storage
from app.main import app
from tests.fakes.fake_s3_client import FakeS3Client

PNG = b"\x89PNG\r\n\x1a\nfake-image"


@pytest.fixture
def fake_s3(client):
    fake = FakeS3Client()
    app.dependency_overrides[get_storage] = lambda: S3Storage(client=fake, bucket="test-bucket", endpoint="https://s3.test")
    return fake


def upload(client, user, name="me.png", content=PNG, content_type="image/png"):
    return client.post("/api/files/profile-photo", files={"file": (name, content, content_type)}, headers=user.headers)


def test_upload_profile_photo_sets_avatar(client, register_user, fake_s3):
    user = register_user("Fiona")
    response = upload(client, user)
    assert response.status_code == 200
    assert response.json()["avatar"] == f"https://s3.test/test-bucket/users/{user.id}/profile-photo.png"
    assert fake_s3.objects[f"users/{user.id}/profile-photo.png"].content_type == "image/png"


def test_new_photo_replaces_old_object_with_other_extension(client, register_user, fake_s3):
    user = register_user("Fiona")
    upload(client, user)
    response = upload(client, user, name="me.jpg", content_type="image/jpeg")

    assert response.json()["avatar"].endswith("/profile-photo.jpg")
    assert set(fake_s3.objects) == {f"users/{user.id}/profile-photo.jpg"}


def test_non_image_upload_is_rejected(client, register_user, fake_s3):
    user = register_user("Fiona")
    assert upload(client, user, name="notes.txt", content_type="text/plain").status_code == 400
    assert upload(client, user, name="fake.png", content_type="text/plain").status_code == 400
    assert fake_s3.objects == {}


def test_delete_profile_photo_restores_default_avatar(client, register_user, fake_s3):
    user = register_user("Fiona")
    upload(client, user)
    upload(client, user, name="me.jpg", content_type="image/jpeg")

    response = client.delete("/api/files/profile-photo", headers=user.headers)
    assert response.status_code == 200
    assert response.json()["avatar"].startswith("https://ui-avatars.com/api/")
    assert fake_s3.objects == {}


def test_storage_failure_is_bad_gateway(client, register_user, fake_s3):
    user = register_user("Fiona")
    fake_s3.fail = True
    response = upload(client, user)
    assert response.status_code == 502
    assert response.json()["detail"] == "Failed to upload file"


def test_file_tree_requires_permission(client, admin, register_user, fake_s3):
    user = register_user("Fiona")
    upload(client, user)

    assert client.get("/api/files/tree", headers=user.headers).status_code == 403

    created = client.post("/api/files/folders", json={"path": "/docs/"}, headers=admin.headers)
    assert created.status_code == 201
    assert created.json() == {"path": "docs/"}

    tree = client.get("/api/files/tree", headers=admin.headers).json()
    assert sorted(node["name"] for node in tree) == ["docs", "users"]

    users = next(node for node in tree if node["name"] == "users")
    photo = users["children"][0]["children"][0]
    assert photo["type"] == "file"
    assert photo["path"] == f"users/{user.id}/profile-photo.png"
    assert photo["size"] == len(PNG)


def test_upload_rejects_undefined_key():
    storage = S3Storage(client=FakeS3Client(), bucket="b", endpoint="https://s3.test/")
    with pytest.raises(BadRequestError):
        storage.upload_file(b"x", "users/undefined/profile-photo.png")
    assert storage.get_file_url("a/b.png") == "https://s3.test/b/a/b.png"


def test_read_and_list_through_storage():
    fake = FakeS3Client()
    storage = S3Storage(client=fake, bucket="b", endpoint="https://s3.test")
    storage.upload_file(b"hello", "docs/readme.txt", "text/plain")

    assert storage.get_file("docs/readme.txt") == b"hello"
    assert storage.list_files("docs/") == [{"key": "docs/readme.txt", "size": 5}]
    with pytest.raises(StorageError):
        storage.get_file("docs/missing.txt")
