from __future__ import annotations

import argparse
import logging

import uvicorn

from docextract.settings import load_settings

logger = logging.getLogger(__name__)


def main() -> None:
    settings = load_settings()

    parser = argparse.ArgumentParser(description="Run the document extraction API.")
    parser.add_argument("--host", default=settings.host)
    parser.add_argument("--port", type=int, default=settings.port)
    parser.add_argument("--log-level", default=settings.log_level)
    args = parser.parse_args()

    logging.basicConfig(
        level=args.log_level.upper(),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    logger.debug("Settings: %s", settings.to_dict())
    logger.info("Server running on port %d", args.port)
    uvicorn.run("docextract.app:app", host=args.host, port=args.port, log_level=args.log_level.lower())


if __name__ == "__main__":
    main()
