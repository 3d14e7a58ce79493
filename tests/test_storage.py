"""Tests for storage.py and the client factory in db.py."""

from __future__ import annotations

import json
from unittest.mock import AsyncMock, patch

import pytest

from sigma_core import db
from sigma_core.config import settings
from sigma_core.storage import (
    FileSessionStorage,
    MemorySessionStorage,
    select_storage,
)


class TestMemoryStorage:
    @pytest.mark.asyncio
    async def test_set_get_remove(self):
        storage = MemorySessionStorage()
        await storage.set_item("token", "abc")
        assert await storage.get_item("token") == "abc"
        await storage.remove_item("token")
        assert await storage.get_item("token") is None

    @pytest.mark.asyncio
    async def test_remove_missing_is_noop(self):
        await MemorySessionStorage().remove_item("missing")


class TestFileStorage:
    @pytest.mark.asyncio
    async def test_items_survive_a_new_instance(self, tmp_path):
        path = tmp_path / "nested" / "session.json"
        await FileSessionStorage(path).set_item("token", "abc")

        assert await FileSessionStorage(path).get_item("token") == "abc"
        assert json.loads(path.read_text()) == {"token": "abc"}

    @pytest.mark.asyncio
    async def test_remove_only_drops_that_key(self, tmp_path):
        storage = FileSessionStorage(tmp_path / "session.json")
        await storage.set_item("a", "1")
        await storage.set_item("b", "2")
        await storage.remove_item("a")

        assert await storage.get_item("a") is None
        assert await storage.get_item("b") == "2"

    @pytest.mark.asyncio
    async def test_corrupt_file_reads_as_empty(self, tmp_path):
        path = tmp_path / "session.json"
        path.write_text("{not json")
        storage = FileSessionStorage(path)

        assert await storage.get_item("token") is None
        await storage.set_item("token", "fresh")
        assert await storage.get_item("token") == "fresh"


def test_select_storage_follows_remember_me(tmp_path):
    assert isinstance(select_storage(False, tmp_path / "s.json"), MemorySessionStorage)
    assert isinstance(select_storage(True, tmp_path / "s.json"), FileSessionStorage)


class TestClientFactory:
    @pytest.mark.asyncio
    async def test_client_built_once_with_selected_storage(self, monkeypatch, tmp_path):
        monkeypatch.setattr(settings, "supabase_anon_key", "anon")
        monkeypatch.setattr(settings, "session_storage_path", str(tmp_path / "s.json"))
        await db.reset_supabase_client()
        fake_client = object()

        with patch.object(db, "acreate_client", AsyncMock(return_value=fake_client)) as create:
            first = await db.get_supabase_client(remember_me=True)
            second = await db.get_supabase_client()

        assert first is second is fake_client
        create.assert_awaited_once()
        options = create.await_args.kwargs["options"]
        assert isinstance(options.storage, FileSessionStorage)
        await db.reset_supabase_client()

    @pytest.mark.asyncio
    async def test_missing_anon_key_raises(self, monkeypatch):
        monkeypatch.setattr(settings, "supabase_anon_key", "")
        await db.reset_supabase_client()
        with pytest.raises(RuntimeError, match="SUPABASE_ANON_KEY"):
            await db.get_supabase_client()
