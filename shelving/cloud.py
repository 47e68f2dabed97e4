import base64
import binascii
import logging
import requests
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional
from urllib.parse import urlencode

from .config import StoreConfig
from .errors import CloudError, InvalidApiKeyError

logger = logging.getLogger(__name__)


class CloudSnapshotBridge:
	"""
	Shares whole database images through a public JSON paste service.
	Documents look like {"timestamp": ..., "db_data": <base64 image>}.
	Writing needs the master key; reading a public document needs nothing.
	"""

	def __init__(self, config: StoreConfig, config_path: Optional[Path] = None, session: Optional[requests.Session] = None):
		"""
		:param config: Supplies the service URL, timeout and the stored master key.
		:param config_path: Where the config is saved when the key changes. None keeps it in memory.
		:param session: HTTP session to use; a new one is created when omitted.
		"""
		self.config = config
		self.config_path = config_path
		self.session = session or requests.Session()

	@property
	def base_url(self) -> str:
		return self.config.cloud_base_url.rstrip("/")

	def set_api_key(self, api_key: Optional[str]):
		"""Store a master key (or clear it with None) and save the config."""
		self.config.set_cloud_api_key(api_key, self.config_path)

	def share_url(self, snapshot_id: str) -> str:
		return f"{self.config.share_base_url}?{urlencode({'sync_id': snapshot_id})}"

	@staticmethod
	def encode_image(image: bytes) -> dict:
		return {
			"timestamp": datetime.now(timezone.utc).isoformat(),
			"db_data": base64.b64encode(image).decode('ascii'),
		}

	def upload(self, image: bytes) -> str:
		"""
		Upload an image and return a shareable link carrying the new document id.
		Raises CloudError on failure, InvalidApiKeyError (after clearing the
		stored key) when the service rejects the master key.
		"""
		api_key = self.config.cloud_api_key
		if not api_key:
			raise CloudError("API KEY REQUIRED")

		logger.info(f"Uploading snapshot ({len(image)} bytes)")
		try:
			response = self.session.post(
				f"{self.base_url}/b",
				json=self.encode_image(image),
				headers={
					"Content-Type": "application/json",
					"X-Master-Key": api_key.strip(),
					"X-Bin-Private": "false",
				},
				timeout=self.config.cloud_timeout
			)
		except requests.RequestException as e:
			logger.warning(f"Snapshot upload failed: {e}")
			raise CloudError("UPLOAD FAILED") from e

		if not response.ok:
			try:
				message = response.json().get("message") or "Upload Failed"
			except ValueError:
				message = "Upload Failed"

			if response.status_code == 401 or "Master Key" in message:
				self.set_api_key(None)
				logger.warning("Snapshot service rejected the master key, key cleared")
				raise InvalidApiKeyError("INVALID MASTER KEY. Key has been reset. Please try again.")
			raise CloudError(message)

		try:
			snapshot_id = response.json()["metadata"]["id"]
		except (ValueError, KeyError, TypeError) as e:
			raise CloudError("Unexpected response from snapshot service") from e

		logger.info(f"Snapshot uploaded as {snapshot_id}")
		return self.share_url(snapshot_id)

	def download(self, snapshot_id: str) -> Optional[bytes]:
		"""
		Fetch the image of a shared document.
		Returns None when the document is missing or malformed or the service
		is unreachable, so callers can fall back to local data.
		"""
		try:
			response = self.session.get(
				f"{self.base_url}/b/{snapshot_id}/latest",
				timeout=self.config.cloud_timeout
			)
		except requests.RequestException as e:
			logger.warning(f"Snapshot service unreachable: {e}")
			return None

		if not response.ok:
			logger.warning(f"Snapshot {snapshot_id} not available (HTTP {response.status_code})")
			return None

		try:
			encoded = response.json()["record"]["db_data"]
			return base64.b64decode(encoded, validate=True)
		except (ValueError, KeyError, TypeError, binascii.Error) as e:
			logger.warning(f"Snapshot {snapshot_id} has an unreadable payload: {e}")
			return None
