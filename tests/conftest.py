import logging
import pytest

from shelving import ShelvingStore, StoreConfig, MockApiRouter

logging.getLogger("shelving").setLevel(logging.DEBUG)


@pytest.fixture
def config():
	return StoreConfig(latency=0.0, bundled_image=None)


@pytest.fixture
def store(tmp_path, config):
	store = ShelvingStore(str(tmp_path / "data"), config=config)
	store.load()
	yield store
	store.close()


@pytest.fixture
def router(store):
	return MockApiRouter(store)
