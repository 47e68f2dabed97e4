"""
Client-side view of the inventory: the rack -> box -> record tree rebuilt from
the flat entity lists the API returns, plus the small helpers the admin panel
derives from it.
"""
import re
from dataclasses import dataclass, field, asdict
from typing import Dict, Iterable, List, Optional

_NUMBERED_LABEL = re.compile(r"^(.*?)(\d+)$")


@dataclass
class FileEntry:
	id: str
	fileNumber: Optional[str]
	fileName: Optional[str]
	fullName: Optional[str]
	fileDate: Optional[str]


@dataclass
class Box:
	id: str
	docId: str
	origin: Optional[str] = None
	files: List[FileEntry] = field(default_factory=list)


@dataclass
class Rack:
	id: str
	docId: str
	boxes: List[Box] = field(default_factory=list)

	def find_box(self, record: dict) -> Optional[Box]:
		"""blockDocId wins; the box label is only a fallback for legacy records."""
		block_doc_id = record.get("blockDocId")
		if block_doc_id:
			for box in self.boxes:
				if box.docId == block_doc_id:
					return box
		label = str(record.get("blockId") or "")
		for box in self.boxes:
			if str(box.id) == label:
				return box
		return None

	def to_dict(self) -> dict:
		return asdict(self)


@dataclass
class Stats:
	racks: int = 0
	boxes: int = 0
	files: int = 0


def build_tree(nodes: Iterable[dict], blocks: Iterable[dict], records: Iterable[dict]) -> List[Rack]:
	"""
	Rebuild the nested tree. Racks are keyed by label, so boxes and records
	whose rack label matches no rack are left out, as are records with no box.
	"""
	tree: Dict[str, Rack] = {}
	for node in nodes:
		if node.get("nodeId"):
			tree[node["nodeId"]] = Rack(id=node["nodeId"], docId=node["docId"])

	for block in blocks:
		rack = tree.get(block.get("nodeId"))
		if rack:
			rack.boxes.append(Box(id=block["blockId"], docId=block["docId"], origin=block.get("originNodeId")))

	for record in records:
		rack = tree.get(record.get("nodeId"))
		if not rack:
			continue
		box = rack.find_box(record)
		if box:
			box.files.append(FileEntry(
				id=record["docId"],
				fileNumber=record.get("fileNumber"),
				fileName=record.get("fileName"),
				fullName=record.get("fullName"),
				fileDate=record.get("fileDate"),
			))

	return list(tree.values())


def compute_stats(tree: List[Rack]) -> Stats:
	stats = Stats(racks=len(tree))
	for rack in tree:
		stats.boxes += len(rack.boxes)
		for box in rack.boxes:
			stats.files += len(box.files)
	return stats


def suggest_next_label(labels: List[str], default_prefix: str) -> str:
	"""
	Propose the label for the next rack or box.
	RACK-01, RACK-07 -> RACK-08. Without any numbered label, fall back to
	<default_prefix><count + 1>, zero-padded to two digits.
	"""
	max_num = 0
	prefix = default_prefix
	has_number = False
	for label in labels:
		match = _NUMBERED_LABEL.match(label or "")
		if not match:
			continue
		has_number = True
		num = int(match.group(2))
		if num > max_num:
			max_num = num
			prefix = match.group(1)

	if has_number:
		return f"{prefix}{max_num + 1:02d}"
	return f"{default_prefix}{len(labels) + 1:02d}"


def filter_records(records: Iterable[dict], query: str) -> List[dict]:
	"""Case-insensitive substring search over a record's text fields and labels."""
	needle = (query or "").upper()
	keys = ("fileNumber", "fileName", "fullName", "fileDate", "blockId", "nodeId")
	result = []
	for record in records:
		haystack = " ".join(str(record.get(k) or "") for k in keys).upper()
		if needle in haystack:
			result.append(record)
	return result
