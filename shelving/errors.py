"""Error taxonomy shared by the store, the handlers and the web layer."""


class ShelvingError(Exception):
	"""Base class for every error raised by the shelving package."""


class ApiError(ShelvingError):
	"""An error that maps onto an HTTP-like status and a user-facing message."""
	status = 500

	def __init__(self, message: str, status: int = None):
		super().__init__(message)
		self.message = message
		if status is not None:
			self.status = status

	def to_dict(self) -> dict:
		return {"error": self.message}


class ValidationError(ApiError):
	status = 400


class AuthError(ApiError):
	status = 401


class RegistrationClosedError(ApiError):
	status = 403

	def __init__(self, message: str = "REGISTRATION IS CLOSED"):
		super().__init__(message)


class NotFoundError(ApiError):
	status = 404

	def __init__(self, message: str = "NOT FOUND"):
		super().__init__(message)


class StoreIOError(ApiError):
	"""Persisting the image failed; the mutation that triggered it was undone."""
	status = 500


class InvalidImageError(ApiError):
	status = 400

	def __init__(self, message: str = "INVALID DB FILE"):
		super().__init__(message)


class CloudError(ShelvingError):
	"""The snapshot service rejected or failed a request."""


class InvalidApiKeyError(CloudError):
	"""The snapshot service refused the master key. The stored key has been cleared."""
