import argparse
import logging
import os

import uvicorn

from donation_leaderboard import __version__
from donation_leaderboard.config import load_config


def configure_logging(config: dict) -> None:
    logging_config = config["logging"]
    logging.basicConfig(level=logging.INFO, format=logging_config["format"])

    log_file = logging_config.get("log_file")
    if not log_file:
        return
    package_logger = logging.getLogger("donation_leaderboard")
    package_logger.setLevel(logging.INFO)
    existing = [
        handler
        for handler in package_logger.handlers
        if isinstance(handler, logging.FileHandler)
        and os.path.basename(getattr(handler, "baseFilename", "")) == os.path.basename(log_file)
    ]
    if existing:
        return

    file_handler = logging.FileHandler(log_file, encoding="utf-8")
    file_handler.setLevel(logging.INFO)
    file_handler.setFormatter(logging.Formatter(logging_config["format"]))
    package_logger.addHandler(file_handler)


def main() -> None:
    config = load_config()
    server_config = config["server"]
    configure_logging(config)

    parser = argparse.ArgumentParser(description="Donation leaderboard service")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--host", default=server_config["host"], help="Bind host")
    parser.add_argument("--port", type=int, default=int(server_config["port"]), help="Bind port")
    parser.add_argument(
        "--skip-init-db",
        action="store_true",
        help="Do not create the order tables on startup",
    )
    args = parser.parse_args()

    from donation_leaderboard.service import create_app

    app = create_app(init_store=not args.skip_init_db)
    logging.info("leaderboard server: http://%s:%s/leaderboard", args.host, args.port)
    uvicorn.run(app, host=args.host, port=args.port)


if __name__ == "__main__":
    main()
