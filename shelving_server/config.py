from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Union
import os
import logging

from shelving import StoreConfig

logger = logging.getLogger(__name__)

DEFAULT_DATA_DIR = ".shelving"


@dataclass
class ServerConfig:
	"""Settings for the HTTP front of one shelving data directory."""
	host: str = "127.0.0.1"
	port: int = 8080
	debug: bool = False
	secret_key: str = field(default_factory=lambda: os.urandom(24).hex())
	data_dir: Union[Path, str, None] = None
	sync_id: Optional[str] = None  # Snapshot id loaded at startup instead of local data
	latency: Optional[float] = None  # Overrides StoreConfig.latency when set
	enforce_token: Optional[bool] = None  # Overrides StoreConfig.enforce_token when set
	max_upload_size: int = 50 * 1024 * 1024  # Restore uploads

	def __post_init__(self):
		self.data_dir = Path(self.data_dir or Path.cwd() / DEFAULT_DATA_DIR).resolve()
		self.data_dir.mkdir(parents=True, exist_ok=True)

	@property
	def base_url(self) -> str:
		return f"http://{self.host}:{self.port}/"

	def apply_to(self, store_config: StoreConfig):
		"""Push server-level overrides into the store config. Share links point back at this server."""
		if self.latency is not None:
			store_config.latency = max(0.0, self.latency)
		if self.enforce_token is not None:
			store_config.enforce_token = self.enforce_token
		store_config.share_base_url = self.base_url
		logger.debug(f"Store latency {store_config.latency}s, token check {'on' if store_config.enforce_token else 'off'}")
