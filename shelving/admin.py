"""
Maintenance console over the raw tables of a store.

Sits beside the entity API: it can list and describe every table, and
insert, edit or delete single rows addressed by their primary key. Writes
still go through store.mutation(), and deleting a rack or a box reuses the
entity handlers so their boxes and records go with them.
"""
import re
import sqlite3
import logging
from dataclasses import dataclass, asdict
from typing import Any, Dict, List, Optional

from .crypto import hash_password, new_doc_id
from .errors import NotFoundError, ValidationError
from .handlers import build_handlers
from .schema import existing_tables

logger = logging.getLogger(__name__)

_HEX_DIGEST = re.compile(r"^[0-9a-fA-F]{64}$")


def quote_ident(name: str) -> str:
	return '"' + name.replace('"', '""') + '"'


@dataclass
class Column:
	name: str
	type: str
	pk: bool

	def to_dict(self) -> dict:
		return asdict(self)


class AdminConsole:
	def __init__(self, store, handlers: Optional[Dict[str, Any]] = None):
		self.store = store
		self.handlers = handlers or build_handlers(store)

	# --- Login ---

	def login(self, body: dict) -> dict:
		"""Same accounts and digest as the entity API."""
		return self.handlers["auth"].login(body)

	def register(self, body: dict) -> dict:
		return self.handlers["auth"].register(body)

	# --- Reading ---

	def list_tables(self) -> List[str]:
		with self.store.lock:
			return existing_tables(self.store.conn)

	def describe(self, table: str) -> List[Column]:
		with self.store.lock:
			if table not in existing_tables(self.store.conn):
				raise NotFoundError("TABLE NOT FOUND")
			info = self.store.conn.execute(f"PRAGMA table_info({quote_ident(table)})").fetchall()
		# table_info rows: cid, name, type, notnull, default, pk
		return [Column(name=row[1], type=row[2], pk=row[5] == 1) for row in info]

	def primary_key(self, table: str) -> str:
		for column in self.describe(table):
			if column.pk:
				return column.name
		raise ValidationError("PRIMARY KEY NOT FOUND")

	def rows(self, table: str) -> List[dict]:
		columns = [c.name for c in self.describe(table)]
		with self.store.lock:
			cursor = self.store.conn.execute(f"SELECT * FROM {quote_ident(table)}")
			return [dict(zip(columns, row)) for row in cursor]

	def get_row(self, table: str, pk_value: str) -> dict:
		columns = [c.name for c in self.describe(table)]
		pk = self.primary_key(table)
		with self.store.lock:
			row = self.store.conn.execute(
				f"SELECT * FROM {quote_ident(table)} WHERE {quote_ident(pk)} = ?", (pk_value,)
			).fetchone()
		if row is None:
			raise NotFoundError("ROW NOT FOUND")
		return dict(zip(columns, row))

	# --- Writing ---

	def _clean_values(self, table: str, values: dict) -> dict:
		if not isinstance(values, dict):
			raise ValidationError("INVALID REQUEST BODY")
		known = {c.name for c in self.describe(table)}
		unknown = sorted(set(values) - known)
		if unknown:
			raise ValidationError(f"UNKNOWN COLUMN: {', '.join(unknown)}")

		cleaned = dict(values)
		password = cleaned.get("password")
		if table == "users" and password is not None and not _HEX_DIGEST.match(str(password)):
			# Plain text typed into the console is stored as its digest
			cleaned["password"] = hash_password(str(password))
		return cleaned

	def insert_row(self, table: str, values: dict) -> dict:
		"""Insert one row. A missing primary key gets a fresh id. Returns the stored row."""
		pk = self.primary_key(table)
		cleaned = self._clean_values(table, values)
		if not cleaned.get(pk):
			cleaned[pk] = new_doc_id()

		names = ", ".join(quote_ident(name) for name in cleaned)
		placeholders = ", ".join("?" for _ in cleaned)
		try:
			with self.store.mutation() as conn:
				conn.execute(
					f"INSERT INTO {quote_ident(table)} ({names}) VALUES ({placeholders})",
					tuple(cleaned.values())
				)
		except sqlite3.IntegrityError as e:
			raise ValidationError("ROW ALREADY EXISTS") from e

		logger.info(f"Console inserted {table} row {cleaned[pk]}")
		return self.get_row(table, cleaned[pk])

	def update_row(self, table: str, pk_value: str, values: dict) -> dict:
		"""Change columns of one row. The primary key itself is fixed."""
		pk = self.primary_key(table)
		cleaned = self._clean_values(table, values)
		if pk in cleaned and cleaned.pop(pk) != pk_value:
			raise ValidationError("PRIMARY KEY CANNOT CHANGE")
		self.get_row(table, pk_value)
		if not cleaned:
			raise ValidationError("FIELDS REQUIRED")

		assignments = ", ".join(f"{quote_ident(name)} = ?" for name in cleaned)
		with self.store.mutation() as conn:
			conn.execute(
				f"UPDATE {quote_ident(table)} SET {assignments} WHERE {quote_ident(pk)} = ?",
				(*cleaned.values(), pk_value)
			)
		logger.info(f"Console updated {table} row {pk_value}")
		return self.get_row(table, pk_value)

	def delete_row(self, table: str, pk_value: str) -> dict:
		"""Delete one row. Racks and boxes take their contents with them."""
		pk = self.primary_key(table)
		if table in ("nodes", "blocks"):
			return self.handlers[table].delete(pk_value)

		with self.store.mutation() as conn:
			conn.execute(f"DELETE FROM {quote_ident(table)} WHERE {quote_ident(pk)} = ?", (pk_value,))
		logger.info(f"Console deleted {table} row {pk_value}")
		return {"success": True}
