"""Persistence of the receiver configuration set."""

import asyncio
import json
import logging
import os
from abc import ABC, abstractmethod

from pyavrbridge.config import ConfigRecord
from pyavrbridge.exceptions import ConfigurationError, InvalidInput

STORAGE_KEY = "avrs"


class ConfigStorage(ABC):
    """Loads and saves the whole record set at once."""

    @abstractmethod
    async def load(self) -> list[ConfigRecord]:
        pass

    @abstractmethod
    async def save(self, records: list[ConfigRecord]):
        pass


class JsonConfigStorage(ConfigStorage):
    """Record set kept in a JSON file: ``{"avrs": [{...}, ...]}``.

    Writes go to a temporary file that replaces the original, so a crash
    mid-save leaves the previous configuration intact.
    """

    def __init__(self, path):
        self._path = os.fspath(path)
        self._logger = logging.getLogger(__name__)

    @property
    def path(self) -> str:
        return self._path

    async def load(self) -> list[ConfigRecord]:
        data = await asyncio.get_running_loop().run_in_executor(None, self._read)
        try:
            records = [ConfigRecord.from_dict(item) for item in data.get(STORAGE_KEY, [])]
        except (InvalidInput, AttributeError, TypeError) as err:
            raise ConfigurationError(f"Config file {self._path} has a malformed receiver: {err}") from err
        self._logger.info(f"Loaded {len(records)} receiver(s) from {self._path}")
        return records

    async def save(self, records: list[ConfigRecord]):
        data = {STORAGE_KEY: [record.to_dict() for record in records]}
        await asyncio.get_running_loop().run_in_executor(None, self._write, data)
        self._logger.info(f"Saved {len(records)} receiver(s) to {self._path}")

    def _read(self) -> dict:
        try:
            with open(self._path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except FileNotFoundError:
            return {}
        except json.JSONDecodeError as err:
            raise ConfigurationError(f"Config file {self._path} is not valid JSON: {err}") from err
        if not isinstance(data, dict):
            raise ConfigurationError(f"Config file {self._path} must contain a JSON object")
        return data

    def _write(self, data: dict):
        directory = os.path.dirname(os.path.abspath(self._path))
        os.makedirs(directory, exist_ok=True)
        tmp_path = f"{self._path}.tmp"
        with open(tmp_path, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2)
        os.replace(tmp_path, self._path)
