import argparse
import json
import os
import sys
from datetime import date

import models  # noqa: F401
from config import load_config
from database import Base, build_engine, build_session_factory
from services.errors import ScanAbortedError
from services.firebase_app import init_firebase
from services.notification_scanner import NotificationScanner
from services.tracing import configure_langfuse_decorators, configure_logging

LOGS_PATH = os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))), "logs")


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Run the daily prescription reorder check once.")
    parser.add_argument("--date", type=date.fromisoformat, default=None, help="Scan as of YYYY-MM-DD (default: today)")
    args = parser.parse_args(argv)

    logger = configure_logging(LOGS_PATH)
    config = load_config()
    init_firebase(config)
    configure_langfuse_decorators(config)

    engine = build_engine(config.database_url)
    Base.metadata.create_all(bind=engine)
    scanner = NotificationScanner.from_config(config, build_session_factory(engine))
    try:
        summary = scanner.run(today=args.date)
    except ScanAbortedError as exc:
        logger.error("Reorder check aborted: %s", exc)
        return 1
    print(json.dumps(summary.to_dict()))
    return 0


if __name__ == "__main__":
    sys.exit(main())
