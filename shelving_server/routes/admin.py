import logging
from functools import wraps
from flask import Blueprint, request, jsonify, current_app, session

from shelving.errors import ApiError

logger = logging.getLogger(__name__)

admin_bp = Blueprint("admin", __name__)

SESSION_FLAG = "master_auth"


def get_console():
	return current_app.config["SHELVING_ADMIN"]


def require_master(f):
	"""Decorator to require a console login in this browser session."""
	@wraps(f)
	def decorated(*args, **kwargs):
		if not session.get(SESSION_FLAG):
			return jsonify({"error": "UNAUTHORIZED"}), 401
		return f(*args, **kwargs)
	return decorated


def json_body() -> dict:
	data = request.get_json(silent=True)
	return data if isinstance(data, dict) else {}


@admin_bp.errorhandler(ApiError)
def api_error(e: ApiError):
	return jsonify(e.to_dict()), e.status


# ============ Login ============

@admin_bp.route("/login", methods=["POST"])
def login():
	result = get_console().login(json_body())
	session[SESSION_FLAG] = True
	logger.info(f"Console login for '{result['username']}'")
	return jsonify({"success": True, "username": result["username"]})


@admin_bp.route("/register", methods=["POST"])
def register():
	"""One-time bootstrap; closed once any user exists."""
	return jsonify(get_console().register(json_body()))


@admin_bp.route("/logout", methods=["POST"])
def logout():
	session.pop(SESSION_FLAG, None)
	return jsonify({"success": True})


# ============ Tables ============

@admin_bp.route("/tables", methods=["GET"])
@require_master
def list_tables():
	console = get_console()
	return jsonify([
		{"name": name, "columns": [c.to_dict() for c in console.describe(name)]}
		for name in console.list_tables()
	])


@admin_bp.route("/tables/<table>", methods=["GET"])
@require_master
def table_rows(table: str):
	console = get_console()
	return jsonify({
		"columns": [c.to_dict() for c in console.describe(table)],
		"rows": console.rows(table)
	})


@admin_bp.route("/tables/<table>", methods=["POST"])
@require_master
def insert_row(table: str):
	return jsonify(get_console().insert_row(table, request.get_json(silent=True)))


@admin_bp.route("/tables/<table>/<path:pk_value>", methods=["PUT"])
@require_master
def update_row(table: str, pk_value: str):
	return jsonify(get_console().update_row(table, pk_value, request.get_json(silent=True)))


@admin_bp.route("/tables/<table>/<path:pk_value>", methods=["DELETE"])
@require_master
def delete_row(table: str, pk_value: str):
	return jsonify(get_console().delete_row(table, pk_value))
