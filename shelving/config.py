import json
import os
from pathlib import Path
from typing import Optional
from dataclasses import dataclass, asdict, fields
import logging

logger = logging.getLogger(__name__)

CONFIG_FILENAME = "config.json"


@dataclass
class StoreConfig:
	"""Settings kept in <data_dir>/config.json."""
	image_key: str = "db_file"  # Storage key of the persisted image
	bundled_image: Optional[str] = "database.db"  # Seed image, relative to the data dir
	latency: float = 0.1  # Simulated round-trip delay per API call, in seconds
	enforce_token: bool = False
	max_boxes_per_rack: int = 40
	max_records_per_box: int = 500
	cloud_base_url: str = "https://api.jsonbin.io/v3"
	cloud_api_key: Optional[str] = None  # Snapshot service master key
	cloud_timeout: float = 10.0
	share_base_url: str = "http://127.0.0.1:8080/"
	version: int = 1

	def to_dict(self) -> dict:
		return asdict(self)

	@classmethod
	def from_dict(cls, data: dict) -> 'StoreConfig':
		names = {f.name for f in fields(cls)}
		ignored = sorted(set(data) - names)
		if ignored:
			logger.debug(f"Ignoring unknown config keys: {', '.join(ignored)}")
		return cls(**{k: v for k, v in data.items() if k in names})

	def save(self, path: Path):
		"""Write the config as JSON. The old file stays intact until the new one is complete."""
		path = Path(path)
		path.parent.mkdir(parents=True, exist_ok=True)
		tmp_path = path.with_name(path.name + ".tmp")
		with open(tmp_path, 'w', encoding='utf-8') as f:
			json.dump(self.to_dict(), f, indent=2)
		os.replace(tmp_path, path)
		logger.debug(f"Saved store config to {path}")

	@classmethod
	def load(cls, path: Path) -> 'StoreConfig':
		"""Read the config, falling back to defaults when the file is absent or unreadable."""
		path = Path(path)
		try:
			with open(path, 'r', encoding='utf-8') as f:
				return cls.from_dict(json.load(f))
		except FileNotFoundError:
			logger.debug(f"No config at {path}, using defaults")
		except (json.JSONDecodeError, OSError, TypeError, AttributeError) as e:
			logger.warning(f"Unreadable config at {path} ({e}), using defaults")
		return cls()

	def validate(self) -> bool:
		if not self.image_key:
			logger.error("image_key cannot be empty")
			return False
		if self.latency < 0:
			logger.error("latency cannot be negative")
			return False
		if min(self.max_boxes_per_rack, self.max_records_per_box) < 1:
			logger.error("Capacity limits must be at least 1")
			return False
		if self.cloud_timeout <= 0:
			logger.error("cloud_timeout must be positive")
			return False
		return True

	def set_cloud_api_key(self, api_key: Optional[str], path: Optional[Path] = None):
		"""Store (or clear, with None) the snapshot service key and save if a path is given."""
		self.cloud_api_key = api_key.strip() if api_key else None
		if path is not None:
			self.save(path)
