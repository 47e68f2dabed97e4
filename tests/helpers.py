import requests


class FakeResponse:
	def __init__(self, status_code: int = 200, payload=None):
		self.status_code = status_code
		self._payload = payload

	@property
	def ok(self) -> bool:
		return 200 <= self.status_code < 400

	def json(self):
		if self._payload is None:
			raise ValueError("No JSON body")
		return self._payload


class FakeSession:
	"""Stands in for requests.Session. Queue responses (or exceptions) per method."""

	def __init__(self):
		self.calls = []
		self.responses = {"GET": [], "POST": []}

	def queue(self, method: str, response):
		self.responses[method].append(response)

	def _next(self, method: str):
		if not self.responses[method]:
			raise requests.ConnectionError("no response queued")
		response = self.responses[method].pop(0)
		if isinstance(response, Exception):
			raise response
		return response

	def get(self, url, **kwargs):
		self.calls.append(("GET", url, kwargs))
		return self._next("GET")

	def post(self, url, **kwargs):
		self.calls.append(("POST", url, kwargs))
		return self._next("POST")


def call(router, method: str, path: str, body=None, token=None):
	response = router.dispatch(method, path, body, token)
	return response.status, response.body


def make_rack(router, label: str) -> str:
	status, body = call(router, "POST", "/api/nodes", {"nodeId": label})
	assert status == 200, body
	return body["docId"]


def make_box(router, rack: str, label: str) -> str:
	status, body = call(router, "POST", "/api/blocks", {"blockId": label, "nodeId": rack})
	assert status == 200, body
	return body["docId"]


def make_record(router, box_doc_id: str, number: str = "F1") -> str:
	status, body = call(router, "POST", "/api/records", {
		"fileNumber": number,
		"fileName": f"FILE {number}",
		"fullName": "JANE DOE",
		"fileDate": "2024-01-01",
		"blockDocId": box_doc_id,
	})
	assert status == 200, body
	return body["docId"]


def insert_legacy_record(store, doc_id: str, rack: str, box: str):
	"""A record from before blockDocId existed: linked to its box by labels only."""
	with store.conn:
		store.conn.execute(
			"INSERT INTO records (docId, fileNumber, fileName, fullName, fileDate, blockId, nodeId, blockDocId) "
			"VALUES (?, ?, ?, ?, ?, ?, ?, NULL)",
			(doc_id, "OLD", "LEGACY FILE", "JOHN DOE", "1999-12-31", box, rack)
		)


def records_by_id(router) -> dict:
	status, body = call(router, "GET", "/api/records")
	assert status == 200
	return {r["docId"]: r for r in body}
