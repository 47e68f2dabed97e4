import re
import logging
from datetime import datetime
from typing import Optional, Dict, List, Any, Tuple

from .crypto import LOCAL_TOKEN, hash_password, new_doc_id, normalize_username
from .errors import ValidationError, AuthError, RegistrationClosedError, NotFoundError
from .models import Node, Block, Record, Note

logger = logging.getLogger(__name__)

_INVALID_LABEL_CHARS = re.compile(r"[.$#\[\]/]")


def clean_label(value: Any) -> str:
	"""Labels are stored trimmed and upper-cased and may not contain . $ # [ ] /"""
	if not isinstance(value, str) or not value.strip():
		raise ValidationError("FIELDS REQUIRED")
	label = value.strip().upper()
	if _INVALID_LABEL_CHARS.search(label):
		raise ValidationError("INVALID CHARACTERS")
	return label


def _text(body: dict, key: str) -> Optional[str]:
	value = body.get(key)
	if value is None:
		return None
	return str(value).strip()


class EntityHandler:
	"""Base for handlers backed by one table. Every write goes through store.mutation()."""
	table: str = None
	model = None

	def __init__(self, store):
		self.store = store

	@property
	def conn(self):
		return self.store.conn

	def _select(self, where: str = "", params: Tuple = ()) -> List[Any]:
		columns = ", ".join(self.model.COLUMNS)
		query = f"SELECT {columns} FROM {self.table}"
		if where:
			query += f" WHERE {where}"
		return [self.model.from_row(row) for row in self.conn.execute(query, params)]

	def get(self, doc_id: str):
		rows = self._select("docId = ?", (doc_id,))
		return rows[0] if rows else None

	def list(self) -> List[dict]:
		return [item.to_dict() for item in self._select()]

	def delete(self, doc_id: str) -> dict:
		with self.store.mutation() as conn:
			conn.execute(f"DELETE FROM {self.table} WHERE docId = ?", (doc_id,))
		return {"success": True}


class AuthHandler:
	def __init__(self, store):
		self.store = store

	@staticmethod
	def _credentials(body: dict, message: str) -> Tuple[str, str]:
		username = normalize_username(str(body.get("username") or ""))
		password = body.get("password")
		if not username or not isinstance(password, str) or not password:
			raise ValidationError(message)
		return username, password

	def login(self, body: dict) -> dict:
		username, password = self._credentials(body, "CREDENTIALS REQUIRED")
		row = self.store.conn.execute(
			"SELECT id FROM users WHERE username = ? AND password = ?",
			(username, hash_password(password))
		).fetchone()
		if not row:
			logger.info(f"Rejected login for '{username}'")
			raise AuthError("INVALID CREDENTIALS")
		return {"token": LOCAL_TOKEN, "username": username}

	def register(self, body: dict) -> dict:
		"""Registration is a one-time bootstrap. It closes as soon as any user exists."""
		if self.store.conn.execute("SELECT COUNT(*) FROM users").fetchone()[0] > 0:
			raise RegistrationClosedError()
		username, password = self._credentials(body, "FIELDS REQUIRED")

		with self.store.mutation() as conn:
			conn.execute(
				"INSERT INTO users (id, username, password) VALUES (?, ?, ?)",
				(new_doc_id(), username, hash_password(password))
			)
		logger.info(f"Registered user '{username}'")
		return {"success": True}


class NodesHandler(EntityHandler):
	table = "nodes"
	model = Node

	def by_label(self, label: str) -> Optional[Node]:
		rows = self._select("nodeId = ?", (label,))
		return rows[0] if rows else None

	def create(self, body: dict) -> dict:
		label = clean_label(body.get("nodeId"))
		if self.by_label(label):
			raise ValidationError("RACK ALREADY EXISTS")

		doc_id = new_doc_id()
		with self.store.mutation() as conn:
			conn.execute("INSERT INTO nodes (docId, nodeId) VALUES (?, ?)", (doc_id, label))
		logger.debug(f"Created rack {label}")
		return {"success": True, "docId": doc_id}

	def update(self, doc_id: str, body: dict) -> dict:
		"""Rename a rack and carry the new label into every box and record that names it."""
		node = self.get(doc_id)
		if not node:
			raise NotFoundError("RACK NOT FOUND")
		label = clean_label(body.get("nodeId"))
		if label == node.nodeId:
			return {"success": True}
		if self.by_label(label):
			raise ValidationError("RACK ALREADY EXISTS")

		old = node.nodeId
		with self.store.mutation() as conn:
			conn.execute("UPDATE nodes SET nodeId = ? WHERE docId = ?", (label, doc_id))
			conn.execute("UPDATE blocks SET nodeId = ? WHERE nodeId = ?", (label, old))
			conn.execute("UPDATE blocks SET originNodeId = ? WHERE originNodeId = ?", (label, old))
			conn.execute("UPDATE records SET nodeId = ? WHERE nodeId = ?", (label, old))
		logger.info(f"Renamed rack {old} to {label}")
		return {"success": True}

	def delete(self, doc_id: str) -> dict:
		"""Delete a rack with every box and record carrying its label."""
		with self.store.mutation() as conn:
			row = conn.execute("SELECT nodeId FROM nodes WHERE docId = ?", (doc_id,)).fetchone()
			if row:
				conn.execute("DELETE FROM blocks WHERE nodeId = ?", (row[0],))
				conn.execute("DELETE FROM records WHERE nodeId = ?", (row[0],))
			conn.execute("DELETE FROM nodes WHERE docId = ?", (doc_id,))
		if row:
			logger.info(f"Deleted rack {row[0]}")
		return {"success": True}


class BlocksHandler(EntityHandler):
	table = "blocks"
	model = Block

	def _require_rack(self, label: str):
		if not self.conn.execute("SELECT 1 FROM nodes WHERE nodeId = ?", (label,)).fetchone():
			raise NotFoundError("RACK NOT FOUND")

	def find(self, rack: str, label: str) -> Optional[Block]:
		"""First box with this label in this rack. Labels are not unique across racks."""
		matches = self._select("nodeId = ? AND blockId = ? ORDER BY docId", (rack, label))
		return matches[0] if matches else None

	def create(self, body: dict) -> dict:
		label = clean_label(body.get("blockId"))
		rack = clean_label(body.get("nodeId"))
		self._require_rack(rack)

		count = self.conn.execute("SELECT COUNT(*) FROM blocks WHERE nodeId = ?", (rack,)).fetchone()[0]
		if count >= self.store.config.max_boxes_per_rack:
			raise ValidationError("RACK SHELVES FULL")

		doc_id = new_doc_id()
		with self.store.mutation() as conn:
			conn.execute(
				"INSERT INTO blocks (docId, blockId, nodeId, originNodeId) VALUES (?, ?, ?, ?)",
				(doc_id, label, rack, None)
			)
		logger.debug(f"Created box {label} in {rack}")
		return {"success": True, "docId": doc_id}

	def delete(self, doc_id: str) -> dict:
		"""Delete a box and its records, including legacy records linked only by label."""
		with self.store.mutation() as conn:
			block = self.get(doc_id)
			if block:
				conn.execute("DELETE FROM records WHERE blockDocId = ?", (doc_id,))
				conn.execute(
					"DELETE FROM records WHERE blockDocId IS NULL AND nodeId = ? AND blockId = ?",
					(block.nodeId, block.blockId)
				)
			conn.execute("DELETE FROM blocks WHERE docId = ?", (doc_id,))
		return {"success": True}

	def move(self, doc_id: str, body: dict) -> dict:
		"""
		Re-parent a box to another rack.
		Records linked by blockDocId follow it; legacy records still matching the
		old (rack, box) labels are adopted and stamped with the box's docId.
		"""
		target = body.get("targetNodeId")
		if not isinstance(target, str) or not target.strip():
			raise ValidationError("SELECT TARGET RACK")
		target = target.strip().upper()

		block = self.get(doc_id)
		if not block:
			raise NotFoundError("BLOCK NOT FOUND")
		self._require_rack(target)

		old_rack = block.nodeId
		with self.store.mutation() as conn:
			conn.execute(
				"UPDATE blocks SET nodeId = ?, originNodeId = ? WHERE docId = ?",
				(target, old_rack, doc_id)
			)
			conn.execute("UPDATE records SET nodeId = ? WHERE blockDocId = ?", (target, doc_id))
			conn.execute(
				"UPDATE records SET nodeId = ?, blockDocId = ? WHERE nodeId = ? AND blockId = ? AND blockDocId IS NULL",
				(target, doc_id, old_rack, block.blockId)
			)
		logger.info(f"Moved box {block.blockId} from {old_rack} to {target}")
		return {"success": True}

	def update(self, doc_id: str, body: dict) -> dict:
		"""Relabel a box. Its records get the new label and legacy ones are adopted."""
		block = self.get(doc_id)
		if not block:
			raise NotFoundError("BLOCK NOT FOUND")
		label = clean_label(body.get("blockId"))
		if label == block.blockId:
			return {"success": True}

		with self.store.mutation() as conn:
			conn.execute(
				"UPDATE records SET blockDocId = ? WHERE nodeId = ? AND blockId = ? AND blockDocId IS NULL",
				(doc_id, block.nodeId, block.blockId)
			)
			conn.execute("UPDATE blocks SET blockId = ? WHERE docId = ?", (label, doc_id))
			conn.execute("UPDATE records SET blockId = ? WHERE blockDocId = ?", (label, doc_id))
		logger.info(f"Renamed box {block.blockId} to {label} in {block.nodeId}")
		return {"success": True}


class RecordsHandler(EntityHandler):
	table = "records"
	model = Record

	def __init__(self, store, blocks: BlocksHandler):
		super().__init__(store)
		self.blocks = blocks

	def _resolve_box(self, body: dict) -> Block:
		"""Find the parent box: by docId when given, otherwise by its (rack, box) labels."""
		block_doc_id = body.get("blockDocId")
		if block_doc_id is not None and not isinstance(block_doc_id, str):
			raise ValidationError("INVALID BOX ID")
		if block_doc_id:
			block = self.blocks.get(block_doc_id)
		else:
			block_label = _text(body, "blockId")
			rack_label = _text(body, "nodeId")
			if not block_label or not rack_label:
				raise ValidationError("FIELDS REQUIRED")
			block = self.blocks.find(rack_label.upper(), block_label.upper())
		if not block:
			raise NotFoundError("BOX NOT FOUND")
		return block

	def create(self, body: dict) -> dict:
		fields = {key: _text(body, key) for key in Record.TEXT_FIELDS}
		if any(not value for value in fields.values()):
			raise ValidationError("FIELDS REQUIRED")

		block = self._resolve_box(body)
		# Legacy rows still linked by label count towards the same box
		count = self.conn.execute(
			"SELECT COUNT(*) FROM records WHERE blockDocId = ? "
			"OR (blockDocId IS NULL AND nodeId = ? AND blockId = ?)",
			(block.docId, block.nodeId, block.blockId)
		).fetchone()[0]
		limit = self.store.config.max_records_per_box
		if count >= limit:
			raise ValidationError(f"BOX FULL (MAX {limit})")

		doc_id = new_doc_id()
		with self.store.mutation() as conn:
			conn.execute("""
				INSERT INTO records (docId, fileNumber, fileName, fullName, fileDate, blockId, nodeId, blockDocId)
				VALUES (?, ?, ?, ?, ?, ?, ?, ?)
			""", (
				doc_id, fields["fileNumber"], fields["fileName"], fields["fullName"], fields["fileDate"],
				block.blockId, block.nodeId, block.docId
			))
		return {"success": True, "docId": doc_id}

	def move(self, doc_id: str, body: dict) -> dict:
		"""Re-parent a record. Rack label, box label and box docId change in one statement."""
		target_block = body.get("targetBlockId")
		if not target_block or not isinstance(target_block, str):
			raise ValidationError("SELECT TARGET BOX")
		if not self.get(doc_id):
			raise NotFoundError("RECORD NOT FOUND")
		block = self.blocks.get(target_block)
		if not block:
			raise NotFoundError("BOX NOT FOUND")

		requested_rack = _text(body, "targetNodeId")
		if requested_rack and requested_rack.upper() != block.nodeId:
			logger.warning(f"Move target rack {requested_rack} does not hold box {block.blockId}, using {block.nodeId}")

		with self.store.mutation() as conn:
			conn.execute(
				"UPDATE records SET nodeId = ?, blockId = ?, blockDocId = ? WHERE docId = ?",
				(block.nodeId, block.blockId, block.docId, doc_id)
			)
		return {"success": True}

	def update(self, doc_id: str, body: dict) -> dict:
		"""Edit the free-text fields of a record."""
		if not self.get(doc_id):
			raise NotFoundError("RECORD NOT FOUND")
		changes = {key: _text(body, key) for key in Record.TEXT_FIELDS if key in body}
		if not changes or any(not value for value in changes.values()):
			raise ValidationError("FIELDS REQUIRED")

		assignments = ", ".join(f"{key} = ?" for key in changes)
		with self.store.mutation() as conn:
			conn.execute(
				f"UPDATE records SET {assignments} WHERE docId = ?",
				(*changes.values(), doc_id)
			)
		return {"success": True}


class NotesHandler(EntityHandler):
	table = "notes"
	model = Note

	def create(self, body: dict) -> dict:
		text = body.get("text")
		if not isinstance(text, str) or not text.strip():
			raise ValidationError("EMPTY NOTE")
		time_str = body.get("time") or datetime.now().strftime("%m/%d/%Y, %I:%M:%S %p")

		doc_id = new_doc_id()
		with self.store.mutation() as conn:
			conn.execute("INSERT INTO notes (docId, text, time) VALUES (?, ?, ?)", (doc_id, text, str(time_str)))
		return {"success": True, "docId": doc_id}


def build_handlers(store) -> Dict[str, Any]:
	"""One handler per entity, all sharing the same store context."""
	blocks = BlocksHandler(store)
	return {
		"auth": AuthHandler(store),
		"nodes": NodesHandler(store),
		"blocks": blocks,
		"records": RecordsHandler(store, blocks),
		"notes": NotesHandler(store),
	}
