import os
import sqlite3
import threading
import logging
from contextlib import contextmanager
from datetime import date
from pathlib import Path
from typing import Optional, Dict, List, Iterator

from .config import StoreConfig, CONFIG_FILENAME
from .errors import StoreIOError, InvalidImageError
from .models import User
from .schema import bootstrap, existing_tables
from .storage import ImageStorage

logger = logging.getLogger(__name__)

SQLITE_HEADER = b"SQLite format 3\x00"


class ShelvingStore:
	"""
	The embedded store. Owns the single in-memory database and writes its
	serialized image back to local storage after every mutation.
	"""

	def __init__(self, data_dir: str, config: Optional[StoreConfig] = None, bridge=None):
		"""
		:param data_dir: Directory holding config.json and the image storage.
		:param config: Overrides the config loaded from data_dir.
		:param bridge: Cloud snapshot bridge; created on first use when omitted.
		"""
		self.root = Path(data_dir).resolve()
		self.config_path = self.root / CONFIG_FILENAME
		os.makedirs(self.root, exist_ok=True)

		self.config = config if config is not None else StoreConfig.load(self.config_path)
		if not self.config.validate():
			raise ValueError(f"Invalid store config at {self.config_path}")

		self.storage = ImageStorage(str(self.root / "storage"))
		self.lock = threading.RLock()
		self.conn: Optional[sqlite3.Connection] = None
		self.source: Optional[str] = None
		self._bridge = bridge

	@property
	def bridge(self):
		if self._bridge is None:
			from .cloud import CloudSnapshotBridge
			self._bridge = CloudSnapshotBridge(self.config, config_path=self.config_path)
		return self._bridge

	@property
	def loaded(self) -> bool:
		return self.conn is not None

	# --- Opening images ---

	@staticmethod
	def _new_connection() -> sqlite3.Connection:
		return sqlite3.connect(":memory:", check_same_thread=False)

	@classmethod
	def open_image(cls, data: bytes) -> sqlite3.Connection:
		"""
		Open a serialized image in a fresh connection and check it is a usable database.
		Raises InvalidImageError without touching any other connection.
		"""
		if not data or not bytes(data[:len(SQLITE_HEADER)]) == SQLITE_HEADER:
			raise InvalidImageError()

		conn = cls._new_connection()
		try:
			conn.deserialize(bytes(data))
			result = conn.execute("PRAGMA quick_check").fetchone()
			if not result or result[0] != "ok":
				raise InvalidImageError()
			conn.execute("SELECT name FROM sqlite_master").fetchall()
		except (sqlite3.DatabaseError, InvalidImageError) as e:
			conn.close()
			logger.debug(f"Rejected image: {e}")
			raise InvalidImageError() from e
		return conn

	@classmethod
	def prepare_image(cls, data: bytes) -> sqlite3.Connection:
		"""
		open_image() plus schema bootstrap. An image whose tables cannot be
		brought up to the current schema is rejected like a corrupt one.
		"""
		conn = cls.open_image(data)
		try:
			bootstrap(conn)
		except sqlite3.DatabaseError as e:
			conn.close()
			logger.debug(f"Rejected image with incompatible schema: {e}")
			raise InvalidImageError() from e
		return conn

	def _read_bundled(self) -> Optional[bytes]:
		if not self.config.bundled_image:
			return None
		path = Path(self.config.bundled_image)
		if not path.is_absolute():
			path = self.root / path
		if not path.exists():
			return None
		with open(path, 'rb') as f:
			return f.read()

	def _fetch_snapshot(self, sync_id: str) -> Optional[bytes]:
		logger.info(f"Loading cloud snapshot: {sync_id}")
		data = self.bridge.download(sync_id)
		if data is None:
			logger.warning(f"Snapshot {sync_id} is expired or unreachable, using local data")
		return data

	def load(self, sync_id: Optional[str] = None) -> str:
		"""
		Load the database image. Sources are tried in order: the remote snapshot
		(when sync_id is given), the locally persisted image, the bundled default
		file. With none available an empty schema is created and persisted.
		Returns the name of the source that was used.
		Only the swap of the live connection takes the lock; fetching and
		migrating happen outside it.
		"""
		candidates = []
		if sync_id:
			candidates.append(("snapshot", lambda: self._fetch_snapshot(sync_id)))
		candidates.append(("local", lambda: self.storage.get(self.config.image_key)))
		candidates.append(("bundled", self._read_bundled))

		conn = None
		source = "new"
		for name, fetch in candidates:
			data = fetch()
			if not data:
				continue
			try:
				conn = self.prepare_image(data)
			except InvalidImageError:
				logger.warning(f"Ignoring invalid {name} image")
				continue
			source = name
			break

		if conn is None:
			logger.info("No saved database found, initializing a new one")
			conn = self._new_connection()
			bootstrap(conn)

		with self.lock:
			if self.conn is not None:
				self.conn.close()
			self.conn = conn
			self.source = source

		if source == "new":
			self.persist()

		logger.info(f"Database loaded from {source} source")
		return source

	# --- Persistence ---

	def persist(self):
		"""Write the current image to local storage. Raises StoreIOError on failure."""
		with self.lock:
			data = self.conn.serialize()
			try:
				self.storage.put(self.config.image_key, data)
			except OSError as e:
				logger.error(f"Failed to persist database: {e}")
				raise StoreIOError("DATABASE SAVE FAILED") from e
		logger.debug(f"Persisted image ({len(data)} bytes)")

	@contextmanager
	def mutation(self) -> Iterator[sqlite3.Connection]:
		"""
		Run a write. The SQL is committed and the image persisted before the
		block is considered done. If persisting fails the in-memory database is
		put back to how it was before the write and StoreIOError propagates.
		"""
		with self.lock:
			before = self.conn.serialize()
			with self.conn:
				yield self.conn
			try:
				self.persist()
			except StoreIOError:
				self.conn.deserialize(before)
				logger.warning("Write rolled back after failed save")
				raise

	def export(self) -> bytes:
		"""Return the serialized database image."""
		with self.lock:
			return self.conn.serialize()

	def import_image(self, data: bytes):
		"""
		Replace the whole database with an uploaded image.
		The image is validated in a scratch connection first; an invalid one
		raises InvalidImageError and the current database is left untouched.
		"""
		conn = self.prepare_image(data)

		with self.lock:
			previous = self.conn
			self.conn = conn
			try:
				self.persist()
			except StoreIOError:
				self.conn = previous
				conn.close()
				raise
			if previous is not None:
				previous.close()
			self.source = "import"

		logger.info(f"Database restored from uploaded image ({len(data)} bytes)")

	@staticmethod
	def export_filename(day: Optional[date] = None) -> str:
		day = day or date.today()
		return f"STORAGE_SYSTEM_BACKUP_{day.isoformat()}.db"

	# --- Inspection ---

	def table_counts(self) -> Dict[str, int]:
		with self.lock:
			counts = {}
			for table in existing_tables(self.conn):
				counts[table] = self.conn.execute(f"SELECT COUNT(*) FROM {table}").fetchone()[0]
			return counts

	def list_users(self) -> List[User]:
		with self.lock:
			cursor = self.conn.execute("SELECT id, username, password FROM users")
			return [User.from_row(row) for row in cursor]

	def close(self):
		"""Close the database connection."""
		with self.lock:
			if self.conn is not None:
				self.conn.close()
				self.conn = None
