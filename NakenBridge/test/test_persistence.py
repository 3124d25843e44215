"""
Tests for client settings and history persistence.
"""

import json

import pytest

from NakenBridge.core.client import PersistenceService
from NakenBridge.core.client.persistence import DEFAULT_SETTINGS


@pytest.fixture
def persistence(tmp_path):
    return PersistenceService(str(tmp_path / "state"))


class TestSettings:

    @pytest.mark.asyncio
    async def test_defaults_when_nothing_saved(self, persistence):
        assert await persistence.load_settings() == DEFAULT_SETTINGS

    @pytest.mark.asyncio
    async def test_save_and_load(self, persistence):
        assert await persistence.save_settings("chat.example.org", 6667, "alice")
        assert await persistence.load_settings() == {
            "server": "chat.example.org", "port": 6667, "username": "alice", "hide_welcome": False
        }

    @pytest.mark.asyncio
    async def test_hide_welcome_survives_connection_save(self, persistence):
        assert await persistence.update_settings(hide_welcome=True, colour="blue")
        await persistence.save_settings("chat.example.org", 6666, "bob")

        settings = await persistence.load_settings()
        assert settings["hide_welcome"] is True
        assert settings["username"] == "bob"
        assert "colour" not in settings

    @pytest.mark.asyncio
    async def test_corrupt_file_falls_back_to_defaults(self, persistence, tmp_path, caplog):
        state = tmp_path / "state"
        state.mkdir()
        (state / "settings.json").write_text("{not json", encoding="utf-8")

        assert await persistence.load_settings() == DEFAULT_SETTINGS
        assert "Could not read" in caplog.text


class TestHistories:

    @pytest.mark.asyncio
    async def test_save_load_reset(self, persistence):
        histories = {"main": [{"content": "#0 alice: hi", "type": "user"}], "pm_2": []}
        assert await persistence.save_histories(histories)
        assert await persistence.load_histories() == histories

        assert await persistence.reset_histories()
        assert await persistence.load_histories() == {}

    @pytest.mark.asyncio
    async def test_non_list_values_dropped(self, persistence, tmp_path):
        await persistence.save_histories({"main": [], "broken": "text"})
        assert await persistence.load_histories() == {"main": []}

    @pytest.mark.asyncio
    async def test_export_thread(self, persistence, tmp_path):
        path = await persistence.export_thread("pm_2", "[user] bob: hi\n[user] You (you): yo")
        assert path.endswith("pm_2-chat-history.txt")
        with open(path, encoding="utf-8") as f:
            assert f.read() == "[user] bob: hi\n[user] You (you): yo\n"

    @pytest.mark.asyncio
    async def test_written_as_json(self, persistence, tmp_path):
        await persistence.save_histories({"main": [{"content": "é", "type": "user"}]})
        raw = (tmp_path / "state" / "histories.json").read_text(encoding="utf-8")
        assert json.loads(raw)["main"][0]["content"] == "é"
