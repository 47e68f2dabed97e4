import argparse
import logging
from pathlib import Path
from shelving import ShelvingStore
from shelving.errors import CloudError, InvalidImageError
from shelving.logger import setup_logging
from shelving_server import ServerConfig, run_server
from shelving_server.config import DEFAULT_DATA_DIR


def build_parser() -> argparse.ArgumentParser:
	parser = argparse.ArgumentParser(description="Storage shelving inventory server")
	parser.add_argument("--data-dir", "-d", default=DEFAULT_DATA_DIR, help="Directory holding config.json and the saved database")
	parser.add_argument("--host", default="127.0.0.1", help="Server host")
	parser.add_argument("--port", type=int, default=8080, help="Server port")
	parser.add_argument("--sync-id", default=None, help="Load this cloud snapshot instead of local data")
	parser.add_argument("--latency", type=float, default=None, help="Simulated API delay in seconds")
	parser.add_argument("--enforce-token", action="store_true", default=None, help="Reject API calls without the session token")
	parser.add_argument("--restore", metavar="FILE", default=None, help="Replace the database with this SQLite file first")
	parser.add_argument("--backup", metavar="FILE", nargs="?", const="", default=None, help="Write a backup (default name if FILE is omitted)")
	parser.add_argument("--share", action="store_true", help="Upload a snapshot and print its share link")
	parser.add_argument("--api-key", default=None, help="Snapshot service master key (saved to config.json)")
	parser.add_argument("--no-server", action="store_true", help="Run the requested actions and exit")
	parser.add_argument("--debug", action="store_true", help="Enable debug logging")
	return parser


def main():
	args = build_parser().parse_args()
	setup_logging(level=logging.DEBUG if args.debug else logging.INFO)

	store = None
	try:
		config = ServerConfig(
			host=args.host,
			port=args.port,
			debug=args.debug,
			data_dir=args.data_dir,
			sync_id=args.sync_id,
			latency=args.latency,
			enforce_token=args.enforce_token
		)
		store = ShelvingStore(str(config.data_dir))
		config.apply_to(store.config)

		source = store.load(sync_id=args.sync_id)
		logging.info(f"Opened {config.data_dir} (loaded from {source})")

		if args.restore:
			store.import_image(Path(args.restore).read_bytes())
			logging.info(f"Restored database from {args.restore}")

		if args.backup is not None:
			target = Path(args.backup or store.export_filename())
			target.write_bytes(store.export())
			logging.info(f"Backup written to {target}")

		if args.share:
			if args.api_key:
				store.bridge.set_api_key(args.api_key)
			url = store.bridge.upload(store.export())
			print(url)

		if not args.no_server:
			logging.info("Press Ctrl+C to stop")
			run_server(config, store)

	except KeyboardInterrupt:
		logging.info("Shutting down...")
	except (InvalidImageError, CloudError) as e:
		logging.error(f"{e}")
	except Exception as e:
		logging.critical(f"Fatal error: {e}", exc_info=True)
	finally:
		if store:
			store.close()
			logging.info("Database closed")


if __name__ == "__main__":
	main()
