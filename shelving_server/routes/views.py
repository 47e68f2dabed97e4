import logging
from io import BytesIO
from pathlib import Path
from flask import Blueprint, current_app, request, jsonify, send_file

from shelving.errors import InvalidImageError, StoreIOError, CloudError, InvalidApiKeyError
from shelving.tree import build_tree, compute_stats

logger = logging.getLogger(__name__)

views_bp = Blueprint("views", __name__)

RESTORE_EXTENSIONS = (".db", ".sqlite", ".sqlite3")


def get_store():
	return current_app.config["SHELVING_STORE"]


def status_payload() -> dict:
	store = get_store()
	return {
		"source": store.source,
		"tables": store.table_counts(),
		"users": [user.username for user in store.list_users()]
	}


@views_bp.route("/")
def home():
	"""Entry point. A sync_id query parameter swaps in a cloud snapshot."""
	sync_id = request.args.get("sync_id")
	if sync_id:
		# load() takes the store lock only for the final swap
		get_store().load(sync_id=sync_id)
	return jsonify(status_payload())


@views_bp.route("/status")
def status():
	return jsonify(status_payload())


@views_bp.route("/tree")
def tree():
	"""Rack -> box -> record tree with dashboard counts."""
	handlers = current_app.config["SHELVING_ROUTER"].handlers
	store = get_store()
	with store.lock:
		racks = build_tree(
			handlers["nodes"].list(),
			handlers["blocks"].list(),
			handlers["records"].list()
		)
	stats = compute_stats(racks)
	return jsonify({
		"racks": [rack.to_dict() for rack in racks],
		"stats": {"racks": stats.racks, "boxes": stats.boxes, "files": stats.files}
	})


@views_bp.route("/backup", methods=["GET"])
def backup():
	"""Download the database image."""
	store = get_store()
	data = store.export()
	logger.info(f"Database exported ({len(data)} bytes)")
	return send_file(
		BytesIO(data),
		mimetype="application/x-sqlite3",
		as_attachment=True,
		download_name=store.export_filename()
	)


@views_bp.route("/restore", methods=["POST"])
def restore():
	"""Replace the database with an uploaded image."""
	if "file" not in request.files:
		return jsonify({"error": "No file provided"}), 400
	
	file = request.files["file"]
	if not file.filename or Path(file.filename).suffix.lower() not in RESTORE_EXTENSIONS:
		return jsonify({"error": "INVALID DB FILE"}), 400
	
	try:
		get_store().import_image(file.read())
	except InvalidImageError as e:
		logger.warning(f"Rejected restore of {file.filename}")
		return jsonify(e.to_dict()), e.status
	except StoreIOError as e:
		return jsonify(e.to_dict()), e.status
	
	return jsonify({"success": True, "message": "DATABASE RESTORED"})


@views_bp.route("/share", methods=["POST"])
def share():
	"""Upload the image to the snapshot service and return a share link."""
	store = get_store()
	data = request.get_json(silent=True) or {}
	
	if data.get("api_key"):
		store.bridge.set_api_key(data["api_key"])
	if not store.config.cloud_api_key:
		return jsonify({"error": "API KEY REQUIRED"}), 400
	
	try:
		url = store.bridge.upload(store.export())
	except InvalidApiKeyError as e:
		return jsonify({"error": str(e)}), 401
	except CloudError as e:
		logger.warning(f"Share failed: {e}")
		return jsonify({"error": "UPLOAD FAILED", "detail": str(e)}), 502
	
	return jsonify({"success": True, "url": url})
