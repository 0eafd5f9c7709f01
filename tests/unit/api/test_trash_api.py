import logging

import pytest


def as_user(user_id: str) -> dict[str, str]:
    return {"X-Filevault-User-Id": user_id}


async def trash_file(client, user_id, name, data=b"data"):
    await client.put(f"/files/{name}", content=data, headers={**as_user(user_id), "Content-Type": "text/plain"})
    response = await client.delete(f"/files/{name}", headers=as_user(user_id))
    return response.json()["path"]


@pytest.mark.asyncio
async def test_list_trash(client):
    await trash_file(client, "u1", "a.txt")

    response = await client.get("/trash", headers=as_user("u1"))

    assert response.status_code == 200
    files = response.json()["files"]
    assert len(files) == 1
    assert files[0]["name"] == "a.txt"
    assert files[0]["daysRemaining"] == 30
    assert files[0]["contentType"] == "text/plain"
    assert set(files[0]) == {"name", "path", "size", "contentType", "deletedAt", "expiresAt", "daysRemaining"}


@pytest.mark.asyncio
async def test_restore(client):
    path = await trash_file(client, "u1", "a.txt", b"payload")

    response = await client.post("/trash/restore", json={"path": path}, headers=as_user("u1"))

    assert response.status_code == 200
    assert response.json() == {
        "success": True,
        "name": "a.txt",
        "path": "users/u1/a.txt",
        "message": "File restored successfully",
    }
    assert (await client.get("/files/a.txt", headers=as_user("u1"))).content == b"payload"
    assert (await client.get("/trash", headers=as_user("u1"))).json()["files"] == []


@pytest.mark.asyncio
async def test_restore_logs_with_request_ray_id(client, caplog):
    path = await trash_file(client, "u1", "a.txt")
    caplog.set_level(logging.INFO)

    response = await client.post(
        "/trash/restore", json={"path": path}, headers={**as_user("u1"), "X-Filevault-Ray-ID": "a1b2c3d4e5f67890"}
    )

    assert response.status_code == 200
    records = [r for r in caplog.records if r.getMessage() == f"Restored {path} to users/u1/a.txt"]
    assert len(records) == 1
    assert records[0].ray_id == "a1b2c3d4e5f67890"


@pytest.mark.asyncio
async def test_restore_of_another_users_file_is_forbidden(client):
    path = await trash_file(client, "u1", "a.txt")

    response = await client.post("/trash/restore", json={"path": path}, headers=as_user("u2"))

    assert response.status_code == 403
    assert response.json()["kind"] == "Unauthorized"


@pytest.mark.asyncio
async def test_restore_requires_path(client):
    response = await client.post("/trash/restore", json={}, headers=as_user("u1"))

    assert response.status_code == 400
    assert response.json()["kind"] == "InvalidRequest"


@pytest.mark.asyncio
async def test_restore_malformed_path(client):
    response = await client.post("/trash/restore", json={"path": "users/u1/no-timestamp"}, headers=as_user("u1"))

    assert response.status_code == 400
    assert response.json()["success"] is False


@pytest.mark.asyncio
async def test_restore_corrupt_metadata(client, api_store, api_config):
    await api_store.put(api_config.trash_bucket, "users/u1/5_a.txt", b"x", "text/plain", {"userId": "u1"})

    response = await client.post("/trash/restore", json={"path": "users/u1/5_a.txt"}, headers=as_user("u1"))

    assert response.status_code == 500
    assert response.json() == {
        "success": False,
        "kind": "CorruptState",
        "message": "Could not determine original file name for users/u1/5_a.txt",
    }


@pytest.mark.asyncio
async def test_permanent_delete(client):
    path = await trash_file(client, "u1", "a.txt")

    response = await client.delete("/trash", params={"path": path}, headers=as_user("u1"))

    assert response.status_code == 200
    assert response.json()["message"] == "File permanently deleted"
    again = await client.delete("/trash", params={"path": path}, headers=as_user("u1"))
    assert again.status_code == 404


@pytest.mark.asyncio
async def test_permanent_delete_of_another_users_file_is_forbidden(client):
    path = await trash_file(client, "u1", "a.txt")

    response = await client.delete("/trash", params={"path": path}, headers=as_user("u2"))

    assert response.status_code == 403
    assert len((await client.get("/trash", headers=as_user("u1"))).json()["files"]) == 1


@pytest.mark.asyncio
async def test_cleanup_requires_api_key(client):
    assert (await client.post("/trash/cleanup")).status_code == 401
    assert (await client.post("/trash/cleanup", headers={"X-API-Key": "wrong"})).status_code == 401


@pytest.mark.asyncio
async def test_cleanup_purges_expired_entries(client, api_store, api_config):
    await api_store.put(api_config.trash_bucket, "users/u1/1000_old.txt", b"x", "text/plain", {"userId": "u1"})
    await trash_file(client, "u1", "fresh.txt")
    headers = {"X-API-Key": api_config.cleanup_api_key}

    dry = await client.post("/trash/cleanup", params={"dry_run": "true"}, headers=headers)
    assert dry.status_code == 200
    assert dry.json()["deletedCount"] == 1
    assert dry.json()["dryRun"] is True

    response = await client.post("/trash/cleanup", headers=headers)

    assert response.status_code == 200
    assert response.json() == {
        "success": True,
        "deletedCount": 1,
        "skippedCount": 0,
        "dryRun": False,
        "message": "Cleaned up 1 expired files from trash",
    }
    assert [f["name"] for f in (await client.get("/trash", headers=as_user("u1"))).json()["files"]] == ["fresh.txt"]


@pytest.mark.asyncio
async def test_backend_failure_maps_to_503(client, api_store):
    from unittest.mock import AsyncMock

    from filevault.errors import BackendUnavailable

    api_store.list_by_prefix = AsyncMock(side_effect=BackendUnavailable("minio down"))

    response = await client.get("/trash", headers=as_user("u1"))

    assert response.status_code == 503
    assert response.json() == {"success": False, "kind": "BackendUnavailable", "message": "minio down"}
