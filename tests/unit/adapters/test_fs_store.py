import json
from pathlib import Path

import pytest

from filevault.adapters import FileSystemObjectStore
from filevault.errors import InvalidRequest
from filevault.errors import NotFound


@pytest.fixture
def fs_store(tmp_path) -> FileSystemObjectStore:
    return FileSystemObjectStore(str(tmp_path))


@pytest.mark.asyncio
async def test_layout_on_disk(fs_store, tmp_path):
    await fs_store.put("trash", "users/u1/5_a.txt", b"abc", "text/plain", {"userId": "u1"})

    assert (tmp_path / "trash" / "data" / "users" / "u1" / "5_a.txt").read_bytes() == b"abc"
    sidecar = json.loads((tmp_path / "trash" / "meta" / "users" / "u1" / "5_a.txt.json").read_text())
    assert sidecar == {"size": 3, "content_type": "text/plain", "metadata": {"userId": "u1"}}


@pytest.mark.asyncio
async def test_object_without_sidecar_is_invisible(fs_store, tmp_path):
    await fs_store.put("files", "users/u1/a.txt", b"abc", "text/plain")
    (tmp_path / "files" / "meta" / "users" / "u1" / "a.txt.json").unlink()

    assert await fs_store.exists("files", "users/u1/a.txt") is False
    assert await fs_store.list_by_prefix("files", "users/") == []
    with pytest.raises(NotFound):
        await fs_store.stat("files", "users/u1/a.txt")


@pytest.mark.asyncio
async def test_no_temp_files_left_behind(fs_store, tmp_path):
    await fs_store.put("files", "users/u1/a.txt", b"abc", "text/plain")
    await fs_store.copy("files", "users/u1/a.txt", "trash", "users/u1/5_a.txt")
    await fs_store.set_metadata("trash", "users/u1/5_a.txt", {"k": "v"})

    assert not [p for p in tmp_path.rglob("*.tmp")]


@pytest.mark.asyncio
@pytest.mark.parametrize("key", ["../escape", "users/../../etc/passwd", "users//a", "", "users/./a"])
async def test_path_traversal_rejected(fs_store, key):
    with pytest.raises(InvalidRequest):
        await fs_store.put("files", key, b"x", "text/plain")


@pytest.mark.asyncio
async def test_json_suffixed_names_round_trip_through_listing(fs_store):
    await fs_store.put("files", "users/u1/config.json", b"{}", "application/json")

    listed = await fs_store.list_by_prefix("files", "users/u1/")

    assert [info.key for info in listed] == ["users/u1/config.json"]


@pytest.mark.asyncio
async def test_listing_walks_only_the_prefix_directory(fs_store, tmp_path, monkeypatch):
    await fs_store.put("files", "users/u1/a.txt", b"a", "text/plain")
    await fs_store.put("files", "users/u10/b.txt", b"b", "text/plain")
    await fs_store.put("files", "users/u2/c.txt", b"c", "text/plain")
    walked = []
    rglob = Path.rglob

    def recording_rglob(self, pattern):
        walked.append(self)
        return rglob(self, pattern)

    monkeypatch.setattr(Path, "rglob", recording_rglob)

    listed = await fs_store.list_by_prefix("files", "users/u1/")

    assert [info.key for info in listed] == ["users/u1/a.txt"]
    assert walked == [tmp_path / "files" / "meta" / "users" / "u1"]


@pytest.mark.asyncio
async def test_listing_prefix_without_trailing_slash(fs_store):
    await fs_store.put("files", "users/u1/a.txt", b"a", "text/plain")
    await fs_store.put("files", "users/u10/b.txt", b"b", "text/plain")

    assert [info.key for info in await fs_store.list_by_prefix("files", "users/u1")] == [
        "users/u1/a.txt",
        "users/u10/b.txt",
    ]
    assert await fs_store.list_by_prefix("files", "users/u3/") == []
