from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional, Protocol

from pydantic import ValidationError

from .models import SessionConfig

logger = logging.getLogger(__name__)

KEY_CONFIG = "config"
KEY_MISTAKES = "mistakes"
KEY_SLOW = "slowResponses"
KEY_HISTORY = "history"


class KeyValueStore(Protocol):
	def get(self, key: str, default: Any = None) -> Any:
		...

	def set(self, key: str, value: Any) -> None:
		...


def _data_path() -> Path:
	env_dir = os.environ.get("INTERVALTRAINER_DATA_DIR")
	dir_ = Path(env_dir) if env_dir else Path.home() / ".intervaltrainer"
	dir_.mkdir(parents=True, exist_ok=True)
	return dir_ / "data.json"


class JsonFileStore:
	"""All values in one JSON document, re-read on every access."""

	def __init__(self, path: Optional[Path] = None) -> None:
		self.path = path or _data_path()

	def _load_raw(self) -> Dict[str, Any]:
		if not self.path.exists():
			return {}
		try:
			data = json.loads(self.path.read_text())
		except (OSError, ValueError) as e:
			logger.warning("could not read %s, using defaults: %s", self.path, e)
			return {}
		return data if isinstance(data, dict) else {}

	def _save_raw(self, data: Dict[str, Any]) -> None:
		self.path.write_text(json.dumps(data, indent=2))

	def get(self, key: str, default: Any = None) -> Any:
		return self._load_raw().get(key, default)

	def set(self, key: str, value: Any) -> None:
		raw = self._load_raw()
		raw[key] = value
		self._save_raw(raw)


class MemoryStore:
	def __init__(self, data: Optional[Dict[str, Any]] = None) -> None:
		self.data: Dict[str, Any] = dict(data or {})

	def get(self, key: str, default: Any = None) -> Any:
		return self.data.get(key, default)

	def set(self, key: str, value: Any) -> None:
		# Same serialisation constraints as the file store
		self.data[key] = json.loads(json.dumps(value))


def load_config(store: KeyValueStore) -> SessionConfig:
	obj = store.get(KEY_CONFIG)
	if isinstance(obj, dict):
		try:
			return SessionConfig.model_validate(obj)
		except ValidationError as e:
			logger.warning("stored config is invalid, using defaults: %s", e)
	return SessionConfig()


def save_config(store: KeyValueStore, config: SessionConfig) -> None:
	store.set(KEY_CONFIG, config.model_dump(mode="json"))
