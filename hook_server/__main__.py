"""
Standalone entrypoint for the deploy hook HTTP server.

Usage:
    python -m hook_server [OPTIONS]
    hook-server [OPTIONS]  (after pip install)

Environment Variables:
    HOOK_DB_PATH: Database path (default: hook_jobs.db)
    JENKINS_URL, JENKINS_USERNAME, JENKINS_API_KEY: Jenkins credentials
    JENKINS_BUILD_START_TIMEOUT: Seconds to wait for a build to start (default: 60)
    EMAIL_DOMAIN: Only notify addresses in this domain
"""

import argparse
import logging
import os
import sys

import uvicorn

logger = logging.getLogger(__name__)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """
    Parse command-line arguments.

    Returns:
        Parsed arguments
    """
    parser = argparse.ArgumentParser(
        description="Deploy Hook - triggers Jenkins jobs after successful deploys",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Environment Variables:
  HOOK_DB_PATH                 Database path (default: hook_jobs.db)
  JENKINS_URL                  Jenkins base URL
  JENKINS_USERNAME             Jenkins user
  JENKINS_API_KEY              Jenkins API token
  JENKINS_BUILD_START_TIMEOUT  Seconds to wait for a build to start (default: 60)
  EMAIL_DOMAIN                 Only notify addresses in this domain

Note: Command-line arguments override environment variables.

Examples:
  # Run with default settings
  hook-server

  # Listen on all interfaces with a custom database
  hook-server --host 0.0.0.0 --port 9000 --db-path /var/lib/hook/jobs.db
        """,
    )

    parser.add_argument("--host", type=str, default="127.0.0.1", help="Bind address")
    parser.add_argument("--port", type=int, default=8000, help="Bind port")
    parser.add_argument(
        "--db-path",
        type=str,
        default=None,
        help="Path to SQLite database file (default: HOOK_DB_PATH env or hook_jobs.db)",
    )
    parser.add_argument(
        "--log-level",
        type=str,
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Logging level (default: INFO)",
    )

    return parser.parse_args(argv)


def main() -> int:
    """
    Main entrypoint for the server.

    Returns:
        Exit code (0 for success, 1 for error)
    """
    args = parse_args()

    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    if args.db_path:
        os.environ["HOOK_DB_PATH"] = args.db_path

    logger.info("Starting Deploy Hook server")
    logger.info(f"  Listening on: {args.host}:{args.port}")
    logger.info(f"  Database: {os.environ.get('HOOK_DB_PATH', 'hook_jobs.db')}")

    try:
        uvicorn.run(
            "hook_server.app:app",
            host=args.host,
            port=args.port,
            log_level=args.log_level.lower(),
        )
        return 0
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return 0
    except Exception as e:
        logger.error(f"Fatal error: {e}", exc_info=True)
        return 1


if __name__ == "__main__":
    sys.exit(main())
