import logging
from typing import Optional
from flask import Flask, jsonify
from werkzeug.exceptions import HTTPException

from shelving import ShelvingStore, MockApiRouter
from shelving.admin import AdminConsole
from .config import ServerConfig

logger = logging.getLogger(__name__)


def open_store(config: ServerConfig, store: Optional[ShelvingStore] = None) -> ShelvingStore:
	"""Use the given store or open the one in config.data_dir, and make sure it is loaded."""
	if store is None:
		store = ShelvingStore(str(config.data_dir))
		config.apply_to(store.config)
	if not store.loaded:
		store.load(sync_id=config.sync_id)
	return store


def create_app(config: Optional[ServerConfig] = None, store: Optional[ShelvingStore] = None) -> Flask:
	"""
	Build the Flask app serving one store: the mock API under /api, the table
	console under /admin, plus backup, restore and share.
	"""
	config = config or ServerConfig()
	store = open_store(config, store)

	router = MockApiRouter(store)
	app = Flask(__name__)
	app.config.update(
		SECRET_KEY=config.secret_key,
		MAX_CONTENT_LENGTH=config.max_upload_size,
		SHELVING_CONFIG=config,
		SHELVING_STORE=store,
		SHELVING_ROUTER=router,
		SHELVING_ADMIN=AdminConsole(store, router.handlers),
	)

	from .routes.views import views_bp
	from .routes.api import api_bp
	from .routes.admin import admin_bp

	app.register_blueprint(views_bp)
	app.register_blueprint(api_bp, url_prefix="/api")
	app.register_blueprint(admin_bp, url_prefix="/admin")

	@app.errorhandler(HTTPException)
	def http_error(e):
		# Clients only understand {"error": ...} bodies
		return jsonify({"error": e.name.upper()}), e.code

	logger.info(f"Shelving app ready (data: {config.data_dir}, loaded from {store.source})")
	return app


def run_server(config: Optional[ServerConfig] = None, store: Optional[ShelvingStore] = None):
	"""Serve the app until interrupted."""
	config = config or ServerConfig()
	app = create_app(config, store)

	logger.info(f"Listening on {config.base_url}")
	app.run(host=config.host, port=config.port, debug=config.debug, threaded=True)
