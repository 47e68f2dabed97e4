import time
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Dict, Any, Callable, Tuple
from urllib.parse import urlparse, unquote

from .crypto import LOCAL_TOKEN
from .errors import ApiError, NotFoundError, AuthError
from .handlers import build_handlers
from .models import ApiResponse

logger = logging.getLogger(__name__)

API_PREFIX = "/api/"


class Entity(Enum):
	AUTH = "auth"
	NODES = "nodes"
	BLOCKS = "blocks"
	RECORDS = "records"
	NOTES = "notes"


class Verb(Enum):
	LIST = "list"
	CREATE = "create"
	UPDATE = "update"
	MOVE = "move"
	DELETE = "delete"
	LOGIN = "login"
	REGISTER = "register"


@dataclass(frozen=True)
class Route:
	entity: Entity
	id: Optional[str] = None
	action: Optional[str] = None


def parse_route(path: str) -> Route:
	"""
	Turn /api/<entity>[/<id>[/<action>]] into a Route.
	Query strings are ignored and the id segment is URL-decoded.
	"""
	clean = urlparse(path).path
	if not clean.startswith(API_PREFIX):
		raise NotFoundError()

	parts = [unquote(p) for p in clean[len(API_PREFIX):].split("/")]
	while parts and parts[-1] == "":
		parts.pop()
	if not parts or len(parts) > 3 or "" in parts:
		raise NotFoundError()

	try:
		entity = Entity(parts[0])
	except ValueError:
		raise NotFoundError()

	return Route(
		entity=entity,
		id=parts[1] if len(parts) > 1 else None,
		action=parts[2] if len(parts) > 2 else None
	)


def resolve_verb(method: str, route: Route) -> Verb:
	"""Map an HTTP method plus route shape onto a verb, or raise NotFoundError."""
	method = method.upper()

	if route.entity is Entity.AUTH:
		if method == "POST" and route.action is None:
			if route.id == "login":
				return Verb.LOGIN
			if route.id == "register":
				return Verb.REGISTER
		raise NotFoundError()

	if route.id is None:
		if method == "GET":
			return Verb.LIST
		if method == "POST":
			return Verb.CREATE
	elif route.action is None:
		if method == "DELETE":
			return Verb.DELETE
		if method == "PUT":
			return Verb.UPDATE
	elif route.action == "move" and method == "PUT":
		return Verb.MOVE

	raise NotFoundError()


Handler = Callable[[Route, dict], Any]


class MockApiRouter:
	"""
	Answers /api/... requests straight from the embedded store.
	Never raises: every failure comes back as an ApiResponse with an error body.
	"""

	def __init__(self, store):
		self.store = store
		self.handlers = build_handlers(store)
		self._table = self._build_table()

	def _build_table(self) -> Dict[Tuple[Entity, Verb], Handler]:
		auth = self.handlers["auth"]
		nodes = self.handlers["nodes"]
		blocks = self.handlers["blocks"]
		records = self.handlers["records"]
		notes = self.handlers["notes"]

		return {
			(Entity.AUTH, Verb.LOGIN): lambda r, b: auth.login(b),
			(Entity.AUTH, Verb.REGISTER): lambda r, b: auth.register(b),

			(Entity.NODES, Verb.LIST): lambda r, b: nodes.list(),
			(Entity.NODES, Verb.CREATE): lambda r, b: nodes.create(b),
			(Entity.NODES, Verb.UPDATE): lambda r, b: nodes.update(r.id, b),
			(Entity.NODES, Verb.DELETE): lambda r, b: nodes.delete(r.id),

			(Entity.BLOCKS, Verb.LIST): lambda r, b: blocks.list(),
			(Entity.BLOCKS, Verb.CREATE): lambda r, b: blocks.create(b),
			(Entity.BLOCKS, Verb.UPDATE): lambda r, b: blocks.update(r.id, b),
			(Entity.BLOCKS, Verb.MOVE): lambda r, b: blocks.move(r.id, b),
			(Entity.BLOCKS, Verb.DELETE): lambda r, b: blocks.delete(r.id),

			(Entity.RECORDS, Verb.LIST): lambda r, b: records.list(),
			(Entity.RECORDS, Verb.CREATE): lambda r, b: records.create(b),
			(Entity.RECORDS, Verb.UPDATE): lambda r, b: records.update(r.id, b),
			(Entity.RECORDS, Verb.MOVE): lambda r, b: records.move(r.id, b),
			(Entity.RECORDS, Verb.DELETE): lambda r, b: records.delete(r.id),

			(Entity.NOTES, Verb.LIST): lambda r, b: notes.list(),
			(Entity.NOTES, Verb.CREATE): lambda r, b: notes.create(b),
			(Entity.NOTES, Verb.DELETE): lambda r, b: notes.delete(r.id),
		}

	def _check_token(self, route: Route, token: Optional[str]):
		if not self.store.config.enforce_token or route.entity is Entity.AUTH:
			return
		if token != LOCAL_TOKEN:
			raise AuthError("UNAUTHORIZED")

	def dispatch(self, method: str, path: str, body: Optional[dict] = None, token: Optional[str] = None) -> ApiResponse:
		"""Handle one request. Returns (status, JSON body) as an ApiResponse."""
		if self.store.config.latency > 0:
			time.sleep(self.store.config.latency)

		try:
			route = parse_route(path)
			verb = resolve_verb(method, route)
			handler = self._table.get((route.entity, verb))
			if handler is None:
				raise NotFoundError()
			if body is not None and not isinstance(body, dict):
				raise ApiError("INVALID REQUEST BODY", status=400)

			self._check_token(route, token)

			logger.debug(f"{method.upper()} {path} -> {route.entity.value}.{verb.value}")
			with self.store.lock:
				result = handler(route, body or {})
			return ApiResponse(200, result)
		except ApiError as e:
			if e.status >= 500:
				logger.error(f"{method.upper()} {path} failed: {e.message}")
			else:
				logger.debug(f"{method.upper()} {path} -> {e.status} {e.message}")
			return ApiResponse.error(e.status, e.message)
		except Exception:
			logger.exception(f"Unhandled error in {method.upper()} {path}")
			return ApiResponse.error(500, "INTERNAL ERROR")
