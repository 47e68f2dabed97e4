from dataclasses import dataclass, field, asdict
from typing import Any, Optional, Tuple


@dataclass
class User:
	id: str
	username: str
	password: str  # hex digest, never the plain password

	COLUMNS = ("id", "username", "password")

	@classmethod
	def from_row(cls, row: Tuple) -> 'User':
		return cls(*row)

	def to_dict(self) -> dict:
		return asdict(self)


@dataclass
class Node:
	"""A rack. Blocks point at it through its label, not its docId."""
	docId: str
	nodeId: str

	COLUMNS = ("docId", "nodeId")

	@classmethod
	def from_row(cls, row: Tuple) -> 'Node':
		return cls(*row)

	def to_dict(self) -> dict:
		return asdict(self)


@dataclass
class Block:
	"""A box inside exactly one rack."""
	docId: str
	blockId: str
	nodeId: str
	originNodeId: Optional[str] = None  # label of the rack it was moved out of

	COLUMNS = ("docId", "blockId", "nodeId", "originNodeId")

	@classmethod
	def from_row(cls, row: Tuple) -> 'Block':
		return cls(*row)

	def to_dict(self) -> dict:
		return asdict(self)


@dataclass
class Record:
	"""
	A file inside a box.
	blockDocId is the authoritative parent link once set; blockId and nodeId
	are the denormalized labels used as a fallback for legacy rows.
	"""
	docId: str
	fileNumber: Optional[str]
	fileName: Optional[str]
	fullName: Optional[str]
	fileDate: Optional[str]
	blockId: Optional[str]
	nodeId: Optional[str]
	blockDocId: Optional[str] = None

	COLUMNS = ("docId", "fileNumber", "fileName", "fullName", "fileDate", "blockId", "nodeId", "blockDocId")
	TEXT_FIELDS = ("fileNumber", "fileName", "fullName", "fileDate")

	@classmethod
	def from_row(cls, row: Tuple) -> 'Record':
		return cls(*row)

	def to_dict(self) -> dict:
		return asdict(self)


@dataclass
class Note:
	docId: str
	text: Optional[str]
	time: Optional[str]

	COLUMNS = ("docId", "text", "time")

	@classmethod
	def from_row(cls, row: Tuple) -> 'Note':
		return cls(*row)

	def to_dict(self) -> dict:
		return asdict(self)


@dataclass
class ApiResponse:
	"""What the router hands back for every request: a status and a JSON-able body."""
	status: int
	body: Any = field(default_factory=dict)

	@property
	def ok(self) -> bool:
		return 200 <= self.status < 300

	def json(self) -> Any:
		return self.body

	@classmethod
	def error(cls, status: int, message: str) -> 'ApiResponse':
		return cls(status, {"error": message})

