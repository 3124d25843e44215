"""
Persistence of client settings and thread histories.
Uses async file I/O to avoid blocking the event loop.
"""
import asyncio
import json
import logging
import os
from typing import Any, Dict, List, Optional

import aiofiles
import aiofiles.os

from NakenBridge.config import config

logger = logging.getLogger(__name__)

SETTINGS_FILE = "settings.json"
HISTORIES_FILE = "histories.json"
EXPORT_SUFFIX = "-chat-history.txt"

DEFAULT_SETTINGS: Dict[str, Any] = {
    "server": config.DEFAULT_TARGET_HOST,
    "port": config.DEFAULT_TARGET_PORT,
    "username": "",
    "hide_welcome": False,
}


class PersistenceService:
    """Saves connection settings and per-thread histories under a state directory."""

    def __init__(self, state_dir: Optional[str] = None):
        self._state_dir = state_dir or config.STATE_DIR
        self._settings_path = os.path.join(self._state_dir, SETTINGS_FILE)
        self._histories_path = os.path.join(self._state_dir, HISTORIES_FILE)
        self._write_lock = asyncio.Lock()
        self._initialized = False

    async def _ensure_dir(self) -> None:
        """Ensure state directory exists (async)."""
        if not self._initialized:
            await aiofiles.os.makedirs(self._state_dir, exist_ok=True)
            self._initialized = True

    @property
    def state_dir(self) -> str:
        return self._state_dir

    async def _read_json(self, path: str) -> Optional[Any]:
        if not await aiofiles.os.path.exists(path):
            return None
        try:
            async with aiofiles.open(path, "r", encoding="utf-8") as f:
                return json.loads(await f.read())
        except (OSError, ValueError) as e:
            logger.warning("Could not read %s: %s", path, e)
            return None

    async def _write_json(self, path: str, data: Any) -> bool:
        await self._ensure_dir()
        try:
            async with self._write_lock:
                async with aiofiles.open(path, "w", encoding="utf-8") as f:
                    await f.write(json.dumps(data, ensure_ascii=False, indent=2))
            return True
        except OSError as e:
            logger.error("Could not write %s: %s", path, e)
            return False

    async def load_settings(self) -> Dict[str, Any]:
        """Last-used connection settings, merged over the defaults."""
        settings = dict(DEFAULT_SETTINGS)
        data = await self._read_json(self._settings_path)
        if isinstance(data, dict):
            settings.update({key: data[key] for key in DEFAULT_SETTINGS if key in data})
        return settings

    async def save_settings(self, server: str, port: int, username: str) -> bool:
        return await self.update_settings(server=server, port=port, username=username)

    async def update_settings(self, **values: Any) -> bool:
        """Merge values into the saved settings; unknown keys are ignored."""
        settings = await self.load_settings()
        settings.update({key: value for key, value in values.items() if key in DEFAULT_SETTINGS})
        return await self._write_json(self._settings_path, settings)

    async def load_histories(self) -> Dict[str, List[dict]]:
        """Saved thread histories; empty when nothing usable was saved."""
        data = await self._read_json(self._histories_path)
        if not isinstance(data, dict):
            return {}
        return {key: value for key, value in data.items() if isinstance(value, list)}

    async def save_histories(self, histories: Dict[str, List[dict]]) -> bool:
        return await self._write_json(self._histories_path, histories)

    async def reset_histories(self) -> bool:
        """Start a fresh history file (called on every successful connection)."""
        return await self._write_json(self._histories_path, {})

    async def export_thread(self, key: str, text: str) -> Optional[str]:
        """
        Write a thread dump to ``<key>-chat-history.txt``.

        Returns:
            Path of the written file, or None on failure
        """
        await self._ensure_dir()
        path = os.path.join(self._state_dir, f"{key}{EXPORT_SUFFIX}")
        try:
            async with self._write_lock:
                async with aiofiles.open(path, "w", encoding="utf-8") as f:
                    await f.write(text + "\n" if text else "")
            return path
        except OSError as e:
            logger.error("Could not export %s: %s", key, e)
            return None
