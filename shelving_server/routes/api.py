import logging
from urllib.parse import quote
from flask import Blueprint, request, jsonify, current_app

logger = logging.getLogger(__name__)

api_bp = Blueprint("api", __name__)


def get_router():
	"""Get the router bound to the active store."""
	return current_app.config["SHELVING_ROUTER"]


@api_bp.route("/<path:subpath>", methods=["GET", "POST", "PUT", "DELETE"])
def forward(subpath: str):
	"""Hand an /api/... request to the mock router and relay its answer."""
	body = None
	if request.get_data():
		body = request.get_json(silent=True)
		if body is None:
			return jsonify({"error": "INVALID REQUEST BODY"}), 400
	
	token = request.headers.get("Authorization")
	# request.path is already decoded and the router decodes ids once more
	path = quote(request.path, safe="/")
	response = get_router().dispatch(request.method, path, body, token)
	
	return jsonify(response.body), response.status
