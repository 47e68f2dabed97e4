import pytest

from shelving import StoreConfig
from shelving.storage import ImageStorage
from shelving_server import ServerConfig


def test_put_replaces_previous_value(tmp_path):
	storage = ImageStorage(str(tmp_path / "storage"))

	assert storage.get("db_file") is None
	storage.put("db_file", b"first")
	storage.put("db_file", b"second")

	assert storage.get("db_file") == b"second"
	assert sorted(p.name for p in storage.root.iterdir()) == ["db_file.bin"]


def test_stale_temp_files_are_removed(tmp_path):
	root = tmp_path / "storage"
	root.mkdir()
	(root / "db_file.bin.tmp").write_bytes(b"half written")
	(root / "db_file.bin").write_bytes(b"complete")

	storage = ImageStorage(str(root))

	assert not (root / "db_file.bin.tmp").exists()
	assert storage.get("db_file") == b"complete"


@pytest.mark.parametrize("key", ["", "../escape", "a/b", "with space"])
def test_invalid_keys(tmp_path, key):
	storage = ImageStorage(str(tmp_path / "storage"))
	with pytest.raises(ValueError):
		storage.put(key, b"x")


def test_server_overrides_reach_store_config(tmp_path):
	server = ServerConfig(host="0.0.0.0", port=9000, data_dir=str(tmp_path / "srv"), latency=-3, enforce_token=True)
	store_config = StoreConfig()

	server.apply_to(store_config)

	assert server.data_dir.is_dir()
	assert store_config.latency == 0.0
	assert store_config.enforce_token is True
	assert store_config.share_base_url == "http://0.0.0.0:9000/"


def test_server_without_overrides_keeps_store_settings(tmp_path):
	store_config = StoreConfig(latency=0.3, enforce_token=True)
	ServerConfig(data_dir=tmp_path / "srv").apply_to(store_config)

	assert store_config.latency == 0.3
	assert store_config.enforce_token is True
