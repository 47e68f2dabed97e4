import logging, sys

LOG_FORMAT = "[%(asctime)s] [%(levelname)s] [%(name)s] %(message)s"
NOISY_LOGGERS = ("urllib3", "werkzeug")


def setup_logging(level = logging.INFO, quiet_libraries: bool = True):
	root = logging.getLogger()
	root.setLevel(level)

	# Calling this twice replaces our handler instead of doubling every line
	for existing in [h for h in root.handlers if getattr(h, "_shelving_handler", False)]:
		root.removeHandler(existing)

	handler = logging.StreamHandler(sys.stdout)
	handler._shelving_handler = True
	handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt="%H:%M:%S"))
	root.addHandler(handler)

	for name in NOISY_LOGGERS if quiet_libraries else ():
		logging.getLogger(name).setLevel(logging.WARNING)
