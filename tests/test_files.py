import os

from sqlalchemy import delete, select

from filevault.models.file import File
from filevault.models.user import User
from tests.utils import bearer, register, upload


async def test_upload_creates_record_and_disk_file(client, alice, upload_dir):
    response = await upload(client, alice["token"], "notes.txt", b"x" * 100)

    assert response.status_code == 201
    record = response.json()
    assert record["file_size"] == 100
    assert record["is_public"] is False
    assert record["original_name"] == "notes.txt"
    assert record["mime_type"] == "text/plain"
    assert record["user_id"] == alice["id"]
    assert record["filename"].startswith("file-")
    assert record["filename"].endswith(".txt")
    assert os.path.getsize(record["file_path"]) == 100
    assert os.listdir(upload_dir) == [record["filename"]]


async def test_upload_without_file(client, alice):
    response = await client.post("/api/files/upload", headers=bearer(alice["token"]))

    assert response.status_code == 400
    assert response.json() == {"message": "Please upload a file"}


async def test_upload_too_large_leaves_nothing_behind(client, alice, upload_dir, db):
    response = await upload(client, alice["token"], "big.bin", b"x" * 1025)

    assert response.status_code == 413
    assert os.listdir(upload_dir) == []
    assert (await db.execute(select(File))).scalars().all() == []


async def test_upload_at_limit_is_accepted(client, alice):
    response = await upload(client, alice["token"], "edge.bin", b"x" * 1024)

    assert response.status_code == 201
    assert response.json()["file_size"] == 1024


async def test_upload_requires_token(client):
    response = await client.post(
        "/api/files/upload", files={"file": ("notes.txt", b"hello", "text/plain")}
    )

    assert response.status_code == 401


async def test_list_is_newest_first_and_owner_only(client, alice, bob):
    for name in ("one.txt", "two.txt", "three.txt"):
        assert (await upload(client, alice["token"], name)).status_code == 201
    await upload(client, bob["token"], "bobs.txt")

    response = await client.get("/api/files", headers=bearer(alice["token"]))

    assert response.status_code == 200
    names = [f["original_name"] for f in response.json()]
    assert names == ["three.txt", "two.txt", "one.txt"]


async def test_list_sort_and_type_filter(client, alice):
    await upload(client, alice["token"], "b.txt", b"x" * 30)
    await upload(client, alice["token"], "a.png", b"x" * 10, "image/png")
    await upload(client, alice["token"], "c.zip", b"x" * 20, "application/zip")
    headers = bearer(alice["token"])

    by_name = await client.get("/api/files", params={"sort": "name", "order": "asc"}, headers=headers)
    assert [f["original_name"] for f in by_name.json()] == ["a.png", "b.txt", "c.zip"]

    by_size = await client.get("/api/files", params={"sort": "size"}, headers=headers)
    assert [f["file_size"] for f in by_size.json()] == [30, 20, 10]

    images = await client.get("/api/files", params={"type": "image"}, headers=headers)
    assert [f["original_name"] for f in images.json()] == ["a.png"]

    documents = await client.get("/api/files", params={"type": "document"}, headers=headers)
    assert [f["original_name"] for f in documents.json()] == ["b.txt"]

    other = await client.get("/api/files", params={"type": "other"}, headers=headers)
    assert [f["original_name"] for f in other.json()] == ["c.zip"]

    found = await client.get("/api/files", params={"search": "PNG"}, headers=headers)
    assert [f["original_name"] for f in found.json()] == ["a.png"]


async def test_list_rejects_unknown_sort(client, alice):
    response = await client.get("/api/files", params={"sort": "owner"}, headers=bearer(alice["token"]))

    assert response.status_code == 400


async def test_stats(client, alice):
    first = (await upload(client, alice["token"], "a.txt", b"x" * 10)).json()
    await upload(client, alice["token"], "b.txt", b"x" * 5)
    await client.patch(f"/api/files/{first['id']}/toggle-public", headers=bearer(alice["token"]))

    response = await client.get("/api/files/stats", headers=bearer(alice["token"]))

    assert response.status_code == 200
    assert response.json() == {"total_files": 2, "total_size_bytes": 15, "public_files": 1}


async def test_private_then_public_scenario(client, alice, bob):
    record = (await upload(client, alice["token"], "notes.txt", b"n" * 100)).json()
    file_id = record["id"]

    response = await client.get(f"/api/files/{file_id}", headers=bearer(bob["token"]))
    assert response.status_code == 403

    toggled = await client.patch(f"/api/files/{file_id}/toggle-public", headers=bearer(alice["token"]))
    assert toggled.status_code == 200
    assert toggled.json() == {"id": file_id, "is_public": True, "message": "File is now public"}

    response = await client.get(f"/api/files/{file_id}", headers=bearer(bob["token"]))
    assert response.status_code == 200
    assert response.json()["id"] == file_id

    download = await client.get(f"/api/files/{file_id}/download", headers=bearer(bob["token"]))
    assert download.status_code == 200
    assert download.content == b"n" * 100


async def test_download_headers(client, alice):
    record = (await upload(client, alice["token"], "notes.txt", b"hello")).json()

    response = await client.get(f"/api/files/{record['id']}/download", headers=bearer(alice["token"]))

    assert response.status_code == 200
    assert response.content == b"hello"
    assert response.headers["content-type"].startswith("text/plain")
    disposition = response.headers["content-disposition"]
    assert disposition.startswith("attachment")
    assert 'filename="notes.txt"' in disposition


async def test_download_private_file_by_other_user(client, alice, bob):
    record = (await upload(client, alice["token"])).json()

    response = await client.get(f"/api/files/{record['id']}/download", headers=bearer(bob["token"]))

    assert response.status_code == 403


async def test_download_when_disk_file_is_gone(client, alice):
    record = (await upload(client, alice["token"])).json()
    os.remove(record["file_path"])

    response = await client.get(f"/api/files/{record['id']}/download", headers=bearer(alice["token"]))

    assert response.status_code == 404
    assert response.json() == {"message": "File not found on server"}


async def test_get_missing_file(client, alice):
    response = await client.get("/api/files/999", headers=bearer(alice["token"]))

    assert response.status_code == 404
    assert response.json() == {"message": "File not found"}


async def test_delete_removes_row_and_disk_file(client, alice, db):
    record = (await upload(client, alice["token"])).json()

    response = await client.delete(f"/api/files/{record['id']}", headers=bearer(alice["token"]))

    assert response.status_code == 200
    assert response.json() == {"message": "File deleted successfully"}
    assert not os.path.exists(record["file_path"])
    assert (await db.execute(select(File).where(File.id == record["id"]))).scalar_one_or_none() is None

    again = await client.get(f"/api/files/{record['id']}", headers=bearer(alice["token"]))
    assert again.status_code == 404


async def test_delete_succeeds_when_disk_file_already_gone(client, alice):
    record = (await upload(client, alice["token"])).json()
    os.remove(record["file_path"])

    response = await client.delete(f"/api/files/{record['id']}", headers=bearer(alice["token"]))

    assert response.status_code == 200


async def test_delete_by_non_owner_is_forbidden_even_when_public(client, alice, bob):
    record = (await upload(client, alice["token"])).json()
    headers = bearer(bob["token"])

    private = await client.delete(f"/api/files/{record['id']}", headers=headers)
    assert private.status_code == 403

    await client.patch(f"/api/files/{record['id']}/toggle-public", headers=bearer(alice["token"]))

    public = await client.delete(f"/api/files/{record['id']}", headers=headers)
    assert public.status_code == 403
    assert public.json() == {"message": "Not authorized to delete this file"}
    assert os.path.exists(record["file_path"])


async def test_delete_missing_file(client, alice):
    response = await client.delete("/api/files/999", headers=bearer(alice["token"]))

    assert response.status_code == 404


async def test_toggle_by_non_owner(client, alice, bob):
    record = (await upload(client, alice["token"])).json()

    response = await client.patch(f"/api/files/{record['id']}/toggle-public", headers=bearer(bob["token"]))

    assert response.status_code == 403


async def test_toggle_twice_returns_to_private(client, alice):
    record = (await upload(client, alice["token"])).json()
    url = f"/api/files/{record['id']}/toggle-public"

    await client.patch(url, headers=bearer(alice["token"]))
    response = await client.patch(url, headers=bearer(alice["token"]))

    assert response.json()["is_public"] is False
    assert response.json()["message"] == "File is now private"


async def test_deleting_user_cascades_to_files(client, alice, db):
    await upload(client, alice["token"])

    await db.execute(delete(User).where(User.id == alice["id"]))
    await db.commit()

    assert (await db.execute(select(File))).scalars().all() == []


async def test_public_reads_require_token_by_default(client, alice):
    record = (await upload(client, alice["token"])).json()
    await client.patch(f"/api/files/{record['id']}/toggle-public", headers=bearer(alice["token"]))

    response = await client.get(f"/api/files/{record['id']}/download")

    assert response.status_code == 401


async def test_anonymous_public_reads_when_enabled(open_app, make_settings):
    _, client = await open_app(make_settings(ALLOW_ANONYMOUS_PUBLIC_READS=True))
    alice = await register(client, "alice", "a@x.com", "pw1")
    public = (await upload(client, alice["token"], "pub.txt", b"public")).json()
    private = (await upload(client, alice["token"], "priv.txt", b"private")).json()
    await client.patch(f"/api/files/{public['id']}/toggle-public", headers=bearer(alice["token"]))

    response = await client.get(f"/api/files/{public['id']}/download")
    assert response.status_code == 200
    assert response.content == b"public"

    response = await client.get(f"/api/files/{private['id']}")
    assert response.status_code == 401

    # Still no anonymous writes
    response = await client.delete(f"/api/files/{public['id']}")
    assert response.status_code == 401


async def test_search_treats_wildcards_literally(client, alice):
    await upload(client, alice["token"], "report.txt")
    await upload(client, alice["token"], "100%_done.txt")
    headers = bearer(alice["token"])

    percent = await client.get("/api/files", params={"search": "%"}, headers=headers)
    assert [f["original_name"] for f in percent.json()] == ["100%_done.txt"]

    underscore = await client.get("/api/files", params={"search": "rt_t"}, headers=headers)
    assert underscore.json() == []
