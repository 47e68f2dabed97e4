import pytest

from shelving import AdminConsole
from shelving.crypto import hash_password
from shelving.errors import NotFoundError, ValidationError
from helpers import make_rack, make_box, make_record, insert_legacy_record, records_by_id


@pytest.fixture
def console(store, router):
	return AdminConsole(store, router.handlers)


def test_lists_and_describes_tables(console):
	assert set(console.list_tables()) == {"users", "nodes", "blocks", "records", "notes"}

	columns = {c.name: c.pk for c in console.describe("blocks")}
	assert columns == {"docId": True, "blockId": False, "nodeId": False, "originNodeId": False}
	assert console.primary_key("users") == "id"

	with pytest.raises(NotFoundError):
		console.describe("widgets")


def test_rows(console, router):
	rack = make_rack(router, "RACK-01")
	assert console.rows("nodes") == [{"docId": rack, "nodeId": "RACK-01"}]
	assert console.get_row("nodes", rack)["nodeId"] == "RACK-01"

	with pytest.raises(NotFoundError):
		console.get_row("nodes", "missing")


def test_insert_assigns_missing_id(console, store):
	row = console.insert_row("notes", {"text": "hello", "time": "now"})

	assert row["docId"]
	assert row["text"] == "hello"
	assert store.storage.get(store.config.image_key) == store.export()


def test_user_passwords_are_stored_as_digests(console):
	typed = console.insert_row("users", {"username": "admin", "password": "s3cret"})
	assert typed["password"] == hash_password("s3cret")

	digest = hash_password("other")
	kept = console.insert_row("users", {"username": "second", "password": digest})
	assert kept["password"] == digest

	updated = console.update_row("users", typed["id"], {"password": "changed"})
	assert updated["password"] == hash_password("changed")
	assert console.login({"username": "admin", "password": "changed"})["username"] == "admin"


@pytest.mark.parametrize("values, message", [
	({"colour": "red"}, "UNKNOWN COLUMN: colour"),
	(["not", "a", "dict"], "INVALID REQUEST BODY"),
])
def test_insert_rejects_bad_values(console, values, message):
	with pytest.raises(ValidationError) as info:
		console.insert_row("notes", values)
	assert info.value.message == message


def test_duplicate_insert(console):
	console.insert_row("notes", {"docId": "n1", "text": "a"})
	with pytest.raises(ValidationError) as info:
		console.insert_row("notes", {"docId": "n1", "text": "b"})
	assert info.value.message == "ROW ALREADY EXISTS"
	assert console.get_row("notes", "n1")["text"] == "a"


def test_update_row(console):
	console.insert_row("notes", {"docId": "n1", "text": "a"})

	assert console.update_row("notes", "n1", {"docId": "n1", "text": "b"})["text"] == "b"

	with pytest.raises(ValidationError) as info:
		console.update_row("notes", "n1", {"docId": "n2"})
	assert info.value.message == "PRIMARY KEY CANNOT CHANGE"

	with pytest.raises(ValidationError) as info:
		console.update_row("notes", "n1", {})
	assert info.value.message == "FIELDS REQUIRED"

	with pytest.raises(NotFoundError):
		console.update_row("notes", "missing", {"text": "c"})


def test_deleting_a_rack_removes_its_contents(console, store, router):
	make_rack(router, "RACK-01")
	rack = make_rack(router, "RACK-02")
	make_record(router, make_box(router, "RACK-01", "BOX-01"))
	kept = make_record(router, make_box(router, "RACK-02", "BOX-01"), "F2")

	console.delete_row("nodes", console.rows("nodes")[0]["docId"])

	assert [row["nodeId"] for row in console.rows("nodes")] == ["RACK-02"]
	assert [row["nodeId"] for row in console.rows("blocks")] == ["RACK-02"]
	assert list(records_by_id(router)) == [kept]
	assert rack in [row["docId"] for row in console.rows("nodes")]


def test_deleting_a_box_removes_its_records(console, store, router):
	make_rack(router, "RACK-01")
	box = make_box(router, "RACK-01", "BOX-01")
	make_record(router, box)
	insert_legacy_record(store, "legacy", "RACK-01", "BOX-01")

	console.delete_row("blocks", box)

	assert console.rows("blocks") == []
	assert console.rows("records") == []


def test_delete_plain_row(console):
	console.insert_row("notes", {"docId": "n1", "text": "a"})
	assert console.delete_row("notes", "n1") == {"success": True}
	assert console.rows("notes") == []
