import argparse
from typing import Optional, Sequence

import uvicorn
from dotenv import load_dotenv

from .app import create_app
from .logging_setup import setup_logging
from .settings import load_settings


def main(argv: Optional[Sequence[str]] = None) -> None:
    parser = argparse.ArgumentParser(prog="audio-relay", description="Audio conversion and transcription service")
    parser.add_argument("--dev", action="store_true", help="Run in development mode (loads .env)")
    parser.add_argument("--host", default="0.0.0.0")
    parser.add_argument("--env-file", default=".env")
    args = parser.parse_args(argv)

    if args.dev:
        loaded = load_dotenv(args.env_file)
        print(f"{args.env_file} loaded successfully" if loaded else f"Error loading {args.env_file} file")

    settings = load_settings()
    logger = setup_logging(settings.server.log_level, settings.server.log_file)
    if not settings.server.api_key:
        logger.warning("API_KEY not configured; every request will be rejected")
    if settings.server.allowed_origins == ("*",):
        logger.info("No specific origins configured, allowing all (*)")
    else:
        logger.info("Allowed origins: %s", ", ".join(settings.server.allowed_origins))

    uvicorn.run(
        create_app(settings),
        host=args.host,
        port=settings.server.port,
        log_level=settings.server.log_level.lower(),
    )


if __name__ == "__main__":
    main()
