import uuid
from cryptography.hazmat.primitives import hashes
import logging

logger = logging.getLogger(__name__)

# Placeholder session token. There is no real session management behind it.
LOCAL_TOKEN = "local-token"


def hash_password(password: str) -> str:
	"""
	Return the lowercase hex SHA-256 digest of a password.
	Digests are compared as stored strings, so the format must stay stable.
	"""
	digest = hashes.Hash(hashes.SHA256())
	digest.update(password.encode('utf-8'))
	return digest.finalize().hex()


def new_doc_id() -> str:
	"""Generate an opaque primary key for a new row."""
	return str(uuid.uuid4())


def normalize_username(username: str) -> str:
	"""Usernames are stored case-folded with all whitespace removed."""
	return "".join(username.split()).lower()
