import sqlite3
import logging
from dataclasses import dataclass, field
from typing import List

logger = logging.getLogger(__name__)

TABLES = {
	"users": "CREATE TABLE IF NOT EXISTS users (id TEXT PRIMARY KEY, username TEXT, password TEXT)",
	"nodes": "CREATE TABLE IF NOT EXISTS nodes (docId TEXT PRIMARY KEY, nodeId TEXT)",
	"blocks": "CREATE TABLE IF NOT EXISTS blocks (docId TEXT PRIMARY KEY, blockId TEXT, nodeId TEXT, originNodeId TEXT)",
	"records": """
		CREATE TABLE IF NOT EXISTS records (
			docId TEXT PRIMARY KEY,
			fileNumber TEXT,
			fileName TEXT,
			fullName TEXT,
			fileDate TEXT,
			blockId TEXT,
			nodeId TEXT,
			blockDocId TEXT
		)
	""",
	"notes": "CREATE TABLE IF NOT EXISTS notes (docId TEXT PRIMARY KEY, text TEXT, time TEXT)",
}

# Columns added after the first release. Older images get them on load.
ADDED_COLUMNS = [
	("blocks", "originNodeId", "TEXT"),
	("records", "blockDocId", "TEXT"),
]


@dataclass
class BootstrapReport:
	created_tables: List[str] = field(default_factory=list)
	added_columns: List[str] = field(default_factory=list)
	backfilled: int = 0

	@property
	def changed(self) -> bool:
		return bool(self.created_tables or self.added_columns or self.backfilled)


def existing_tables(conn: sqlite3.Connection) -> List[str]:
	cursor = conn.execute("SELECT name FROM sqlite_master WHERE type='table' AND name NOT LIKE 'sqlite_%'")
	return [row[0] for row in cursor]


def table_columns(conn: sqlite3.Connection, table: str) -> List[str]:
	return [row[1] for row in conn.execute(f"PRAGMA table_info({table})")]


def create_tables(conn: sqlite3.Connection) -> List[str]:
	"""Create any missing table. Returns the names of the tables that were created."""
	present = set(existing_tables(conn))
	created = []
	for name, ddl in TABLES.items():
		if name in present:
			continue
		conn.execute(ddl)
		created.append(name)
	return created


def migrate(conn: sqlite3.Connection) -> List[str]:
	"""Add later-introduced columns where absent. Already-present columns are left alone."""
	added = []
	for table, column, col_type in ADDED_COLUMNS:
		if column in table_columns(conn, table):
			continue
		conn.execute(f"ALTER TABLE {table} ADD COLUMN {column} {col_type}")
		added.append(f"{table}.{column}")
	return added


def backfill_block_doc_ids(conn: sqlite3.Connection) -> int:
	"""
	Point legacy records at their box by docId.
	Matches on the (blockId, nodeId) label pair and only touches rows whose
	blockDocId is still null, so re-running it changes nothing.
	Returns the number of records that received a blockDocId.
	"""
	cursor = conn.execute("""
		UPDATE records SET blockDocId = (
			SELECT docId FROM blocks
			WHERE blocks.blockId = records.blockId AND blocks.nodeId = records.nodeId
			ORDER BY docId LIMIT 1
		)
		WHERE blockDocId IS NULL
		AND EXISTS (
			SELECT 1 FROM blocks
			WHERE blocks.blockId = records.blockId AND blocks.nodeId = records.nodeId
		)
	""")
	return cursor.rowcount


def bootstrap(conn: sqlite3.Connection) -> BootstrapReport:
	"""Bring any image, empty or old, up to the current schema."""
	report = BootstrapReport()
	with conn:
		report.created_tables = create_tables(conn)
		report.added_columns = migrate(conn)
		report.backfilled = backfill_block_doc_ids(conn)

	if report.created_tables:
		logger.info(f"Created tables: {', '.join(report.created_tables)}")
	if report.added_columns:
		logger.info(f"Added columns: {', '.join(report.added_columns)}")
	if report.backfilled:
		logger.info(f"Linked {report.backfilled} legacy records to their boxes")
	return report
