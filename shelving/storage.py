import os
import re
import logging
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)


class ImageStorage:
	"""
	Local persistent key-value store for database images.
	Each key maps to one file inside the storage directory. Writes go to a
	temp file first and are renamed into place, so a key always holds either
	the previous image or the new one.
	"""
	SUFFIX = ".bin"
	_KEY_PATTERN = re.compile(r"^[A-Za-z0-9_.-]+$")

	def __init__(self, storage_dir: str):
		self.root = Path(storage_dir).resolve()
		os.makedirs(self.root, exist_ok=True)

		# Clean stale temp files from interrupted writes
		for tmp_file in self.root.glob("*.tmp"):
			try:
				os.remove(tmp_file)
			except OSError:
				logger.warning(f"Could not remove stale temp file {tmp_file}")

	def _path_for(self, key: str) -> Path:
		if not key or not self._KEY_PATTERN.match(key):
			raise ValueError(f"Invalid storage key: {key!r}")
		return self.root / f"{key}{self.SUFFIX}"

	def get(self, key: str) -> Optional[bytes]:
		"""Return the bytes stored under key, or None if nothing is stored."""
		path = self._path_for(key)
		if not path.exists():
			return None
		with open(path, 'rb') as f:
			return f.read()

	def put(self, key: str, data: bytes):
		"""Store bytes under key, replacing any previous value."""
		path = self._path_for(key)
		tmp_path = path.with_suffix(path.suffix + ".tmp")
		with open(tmp_path, 'wb') as f:
			f.write(data)
			f.flush()
			os.fsync(f.fileno())
		os.replace(tmp_path, path)
		logger.debug(f"Stored {len(data)} bytes under '{key}'")

