import sqlite3

from shelving import schema


def old_image_connection() -> sqlite3.Connection:
	"""An image from before originNodeId and blockDocId were added."""
	conn = sqlite3.connect(":memory:")
	with conn:
		conn.execute("CREATE TABLE users (id TEXT PRIMARY KEY, username TEXT, password TEXT)")
		conn.execute("CREATE TABLE nodes (docId TEXT PRIMARY KEY, nodeId TEXT)")
		conn.execute("CREATE TABLE blocks (docId TEXT PRIMARY KEY, blockId TEXT, nodeId TEXT)")
		conn.execute(
			"CREATE TABLE records (docId TEXT PRIMARY KEY, fileNumber TEXT, fileName TEXT, "
			"fullName TEXT, fileDate TEXT, blockId TEXT, nodeId TEXT)"
		)
		conn.execute("CREATE TABLE notes (docId TEXT PRIMARY KEY, text TEXT, time TEXT)")
		conn.execute("INSERT INTO nodes VALUES ('n1', 'RACK-01'), ('n2', 'RACK-02')")
		conn.execute("INSERT INTO blocks VALUES ('b1', 'BOX-01', 'RACK-01'), ('b2', 'BOX-01', 'RACK-02')")
		conn.execute("INSERT INTO records VALUES ('r1', 'F1', 'A', 'B', 'C', 'BOX-01', 'RACK-01')")
		conn.execute("INSERT INTO records VALUES ('r2', 'F2', 'A', 'B', 'C', 'BOX-01', 'RACK-02')")
		conn.execute("INSERT INTO records VALUES ('r3', 'F3', 'A', 'B', 'C', 'BOX-99', 'RACK-01')")
	return conn


def dump(conn: sqlite3.Connection) -> dict:
	return {
		table: sorted(conn.execute(f"SELECT * FROM {table}").fetchall())
		for table in schema.existing_tables(conn)
	}


def test_bootstrap_creates_all_tables_on_empty_image():
	conn = sqlite3.connect(":memory:")
	report = schema.bootstrap(conn)

	assert sorted(report.created_tables) == ["blocks", "nodes", "notes", "records", "users"]
	assert report.added_columns == []
	assert schema.table_columns(conn, "records") == [
		"docId", "fileNumber", "fileName", "fullName", "fileDate", "blockId", "nodeId", "blockDocId"
	]
	assert "originNodeId" in schema.table_columns(conn, "blocks")


def test_migrate_adds_missing_columns_once():
	conn = old_image_connection()

	with conn:
		added = schema.migrate(conn)
	assert added == ["blocks.originNodeId", "records.blockDocId"]

	with conn:
		assert schema.migrate(conn) == []


def test_backfill_links_records_by_rack_and_box_label():
	conn = old_image_connection()
	report = schema.bootstrap(conn)

	assert report.added_columns == ["blocks.originNodeId", "records.blockDocId"]
	assert report.backfilled == 2
	links = dict(conn.execute("SELECT docId, blockDocId FROM records").fetchall())
	# Same box label in two racks resolves to the box in the record's own rack
	assert links == {"r1": "b1", "r2": "b2", "r3": None}


def test_bootstrap_is_idempotent():
	conn = old_image_connection()
	schema.bootstrap(conn)
	first = dump(conn)

	report = schema.bootstrap(conn)

	assert not report.changed
	assert dump(conn) == first


def test_backfill_leaves_existing_links_alone():
	conn = old_image_connection()
	schema.bootstrap(conn)
	with conn:
		conn.execute("UPDATE records SET blockDocId = 'b2' WHERE docId = 'r1'")

	with conn:
		assert schema.backfill_block_doc_ids(conn) == 0
	assert conn.execute("SELECT blockDocId FROM records WHERE docId = 'r1'").fetchone()[0] == "b2"
