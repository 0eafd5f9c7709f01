import pytest


def as_user(user_id: str) -> dict[str, str]:
    return {"X-Filevault-User-Id": user_id}


@pytest.mark.asyncio
async def test_health(client):
    response = await client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "healthy"}


@pytest.mark.asyncio
async def test_upload_list_download(client):
    upload = await client.put(
        "/files/report.pdf", content=b"12345", headers={**as_user("u1"), "Content-Type": "application/pdf"}
    )

    assert upload.status_code == 200
    body = upload.json()
    assert body["success"] is True
    assert body["file"]["name"] == "report.pdf"
    assert body["file"]["size"] == 5
    assert body["file"]["contentType"] == "application/pdf"

    listing = await client.get("/files", headers=as_user("u1"))
    assert listing.status_code == 200
    assert [(f["name"], f["size"]) for f in listing.json()["files"]] == [("report.pdf", 5)]

    download = await client.get("/files/report.pdf", headers=as_user("u1"))
    assert download.status_code == 200
    assert download.content == b"12345"
    assert download.headers["content-type"] == "application/pdf"
    assert download.headers["content-length"] == "5"
    assert download.headers["content-disposition"] == "attachment; filename*=UTF-8''report.pdf"


@pytest.mark.asyncio
async def test_files_are_private_to_each_user(client):
    await client.put("/files/a.txt", content=b"x", headers=as_user("u1"))

    assert (await client.get("/files", headers=as_user("u2"))).json()["files"] == []
    response = await client.get("/files/a.txt", headers=as_user("u2"))
    assert response.status_code == 404
    assert response.json()["kind"] == "NotFound"


@pytest.mark.asyncio
async def test_missing_identity_is_rejected(client):
    response = await client.get("/files")

    assert response.status_code == 401
    assert response.json() == {"success": False, "kind": "Unauthenticated", "message": "Unauthorized - Please sign in"}


@pytest.mark.asyncio
async def test_delete_moves_file_to_trash(client):
    await client.put("/files/a.txt", content=b"x", headers=as_user("u1"))

    response = await client.delete("/files/a.txt", headers=as_user("u1"))

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["name"] == "a.txt"
    assert body["path"].startswith("users/u1/")
    assert body["message"] == "File moved to trash. Will be permanently deleted after 30 days."
    assert (await client.get("/files", headers=as_user("u1"))).json()["files"] == []


@pytest.mark.asyncio
async def test_delete_missing_file(client):
    response = await client.delete("/files/ghost.txt", headers=as_user("u1"))

    assert response.status_code == 404
    assert response.json() == {"success": False, "kind": "NotFound", "message": "File not found: ghost.txt"}


@pytest.mark.asyncio
async def test_upload_over_size_limit_is_rejected(api_config, api_store):
    from httpx import ASGITransport
    from httpx import AsyncClient

    from filevault.main import factory

    api_config.max_upload_size_mb = 1
    app = factory(config=api_config, store=api_store)

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        response = await client.put("/files/big.bin", content=b"x" * (1024 * 1024 + 1), headers=as_user("u1"))

    assert response.status_code == 413
    assert response.json()["kind"] == "PayloadTooLarge"
    assert await api_store.list_by_prefix(api_config.active_bucket, "users/") == []


@pytest.mark.asyncio
async def test_invalid_file_name_is_rejected(client):
    response = await client.put("/files/bad%0Aname", content=b"x", headers=as_user("u1"))

    assert response.status_code == 400
    assert response.json()["kind"] == "InvalidRequest"
