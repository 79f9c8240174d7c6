"""Tests for the file-backed secure storage."""

import asyncio
import json
import os
import stat
import sys

import pytest

from latchkey.auth.services.storage import FileSecureStorage, MemorySecureStorage


class TestFileSecureStorage:
    async def test_set_get_remove(self, tmp_path):
        # Arrange
        storage = FileSecureStorage(tmp_path / "tokens.json")

        # Act
        await storage.set("latchkey.access_token", "a")
        await storage.set("latchkey.refresh_token", "r")
        await storage.remove("latchkey.access_token")

        # Assert
        assert await storage.get("latchkey.access_token") is None
        assert await storage.get("latchkey.refresh_token") == "r"
        assert json.loads((tmp_path / "tokens.json").read_text()) == {
            "latchkey.refresh_token": "r"
        }

    async def test_missing_file_reads_as_empty(self, tmp_path):
        storage = FileSecureStorage(tmp_path / "absent.json")

        assert await storage.get("latchkey.access_token") is None
        await storage.remove("latchkey.access_token")
        assert not storage.path.exists()

    async def test_creates_parent_directories(self, tmp_path):
        storage = FileSecureStorage(tmp_path / "nested" / "dir" / "tokens.json")

        await storage.set("k", "v")

        assert await storage.get("k") == "v"

    @pytest.mark.skipif(sys.platform == "win32", reason="POSIX permissions")
    async def test_file_is_owner_only(self, tmp_path):
        # Arrange
        storage = FileSecureStorage(tmp_path / "tokens.json")

        # Act
        await storage.set("k", "v")

        # Assert
        mode = stat.S_IMODE(os.stat(storage.path).st_mode)
        assert mode == 0o600

    async def test_leaves_no_temporary_files(self, tmp_path):
        storage = FileSecureStorage(tmp_path / "tokens.json")

        await storage.set("a", "1")
        await storage.set("b", "2")

        assert [p.name for p in tmp_path.iterdir()] == ["tokens.json"]

    async def test_corrupt_file_reads_as_empty(self, tmp_path):
        # Arrange
        path = tmp_path / "tokens.json"
        path.write_text("{not json")
        storage = FileSecureStorage(path)

        # Act & Assert
        assert await storage.get("k") is None

        await storage.set("k", "v")
        assert await storage.get("k") == "v"

    async def test_concurrent_writes_keep_every_key(self, tmp_path):
        # Arrange
        storage = FileSecureStorage(tmp_path / "tokens.json")

        # Act
        await asyncio.gather(*(storage.set(f"k{i}", str(i)) for i in range(10)))

        # Assert
        data = json.loads((tmp_path / "tokens.json").read_text())
        assert data == {f"k{i}": str(i) for i in range(10)}

    async def test_file_access_runs_in_worker_thread(self, tmp_path, monkeypatch):
        # Arrange
        storage = FileSecureStorage(tmp_path / "tokens.json")
        offloaded = []
        real_to_thread = asyncio.to_thread

        async def recording_to_thread(func, *args):
            offloaded.append(func.__name__)
            return await real_to_thread(func, *args)

        monkeypatch.setattr(asyncio, "to_thread", recording_to_thread)

        # Act
        await storage.set("k", "v")
        await storage.get("k")
        await storage.remove("k")

        # Assert
        assert offloaded == ["_set", "_read", "_remove"]


class TestMemorySecureStorage:
    async def test_initial_values_are_copied(self):
        initial = {"k": "v"}
        storage = MemorySecureStorage(initial)

        await storage.set("k", "w")

        assert initial == {"k": "v"}
        assert await storage.get("k") == "w"
