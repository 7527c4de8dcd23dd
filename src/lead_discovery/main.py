#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Main entry point for the lead discovery pipeline.

This module initializes the application, sets up logging, and provides
the command-line interface.
"""

import sys
import json
import time
import argparse
import logging
from typing import Optional

from lead_discovery.config import config
from lead_discovery.orchestration.service import LeadDiscoveryService
from lead_discovery.exceptions import ConfigurationError, InactiveUserError, SchedulerStoppedError
from lead_discovery.utils.logger import configure_logging

POLL_INTERVAL_SECONDS = 1.0


def setup_argparse() -> argparse.ArgumentParser:
    """
    Set up command-line argument parsing.

    Returns:
        argparse.ArgumentParser: Configured argument parser
    """
    parser = argparse.ArgumentParser(
        description="Lead Discovery",
        epilog="Scheduled multi-source discovery of project leads.",
    )

    # Main commands
    parser.add_argument(
        "command",
        nargs="?",
        choices=["serve", "run-now", "scheduled", "sources"],
        help="Command to execute",
    )

    # Run options
    parser.add_argument(
        "--config-id",
        type=str,
        help="Configuration to run (run-now)",
    )
    parser.add_argument(
        "--host",
        type=str,
        default=config.api_host,
        help=f"Bind address for serve (default: {config.api_host})",
    )
    parser.add_argument(
        "--port",
        type=int,
        default=config.api_port,
        help=f"Port for serve (default: {config.api_port})",
    )

    # Common options
    parser.add_argument(
        "--log-level",
        type=str,
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Set logging level",
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Enable verbose output",
    )
    parser.add_argument(
        "--version",
        action="store_true",
        help="Show version information",
    )

    return parser


def build_service() -> Optional[LeadDiscoveryService]:
    service = LeadDiscoveryService()
    if not service.initialize_components():
        return None
    return service


def serve(host: str, port: int) -> bool:
    """
    Run the scheduler and the HTTP API until interrupted.

    Returns:
        bool: True if the server exited cleanly
    """
    import uvicorn

    from lead_discovery.api.api import app, get_service

    logger = logging.getLogger("lead_discovery")
    service = get_service()
    service.start()

    try:
        logger.info(f"Serving API on {host}:{port}")
        uvicorn.run(app, host=host, port=port)
    finally:
        service.shutdown_gracefully()

    return True


def run_now(config_id: Optional[str]) -> bool:
    """
    Run one configuration in the foreground and print its result.

    Args:
        config_id: Configuration to run

    Returns:
        bool: True if the run completed
    """
    logger = logging.getLogger("lead_discovery")
    if not config_id:
        logger.error("run-now requires --config-id")
        return False

    service = build_service()
    if service is None:
        return False
    service.register_signal_handlers()

    try:
        try:
            started = service.scheduler.run_now(config_id)
        except (ConfigurationError, InactiveUserError, SchedulerStoppedError) as e:
            logger.error(str(e))
            return False

        job_id = started["jobId"]
        logger.info(f"Started job {job_id}")

        last_message = None
        while not service.shutdown_requested:
            progress = service.registry.get(job_id)
            if progress is None:
                logger.error(f"Job {job_id} disappeared from the registry")
                return False
            if progress["message"] != last_message:
                print(f"[{progress['percentage']:3d}%] {progress['stage']}: {progress['message']}")
                last_message = progress["message"]
            if progress["stage"] in ("completed", "error"):
                break
            time.sleep(POLL_INTERVAL_SECONDS)

        job = service.registry.get_job(job_id)
        if job is None or job.result is None:
            return False

        print(json.dumps(job.result.to_dict(), indent=2, default=str))
        return True
    finally:
        service.shutdown_gracefully()


def show_scheduled() -> bool:
    """Print every scheduled configuration with its next run time."""
    service = build_service()
    if service is None:
        return False

    try:
        service.start()
        jobs = service.scheduler.get_scheduled_jobs()
        if not jobs:
            print("No scheduled configurations")
        for job in jobs:
            print(f"{job['configId']:<24} {job['nextRun'] or '-':<32} {job['name']}")
        return True
    finally:
        service.shutdown_gracefully()


def list_sources() -> bool:
    """Print the source catalog and whether each source is enabled."""
    service = build_service()
    if service is None:
        return False

    try:
        for source in service.sources:
            info = source.describe()
            state = "enabled" if info["enabled"] else "disabled"
            print(f"{info['key']:<24} {info['kind']:<10} {state:<9} {info['name']}")
        return True
    finally:
        service.shutdown_gracefully()


def main() -> int:
    """
    Main entry point for the application.

    Returns:
        int: Exit code (0 for success, non-zero for failure)
    """
    # Parse command-line arguments
    parser = setup_argparse()
    args = parser.parse_args()

    # Show version and exit if requested
    if args.version:
        import lead_discovery
        print(f"Lead Discovery v{lead_discovery.__version__}")
        return 0

    if not args.command:
        parser.print_help()
        return 1

    # Configure logging
    level = logging.DEBUG if args.verbose else (args.log_level or config.log_level)
    logger = configure_logging(
        level=level,
        log_file=str(config.log_file_path) if config.log_file_path else None,
        json_logs=config.log_json,
    )

    # Validate configuration
    errors = config.validate()
    if errors:
        for error in errors:
            logger.error(f"Configuration error: {error}")
        return 1

    # Execute the requested command
    try:
        if args.command == "serve":
            success = serve(args.host, args.port)
        elif args.command == "run-now":
            success = run_now(args.config_id)
        elif args.command == "scheduled":
            success = show_scheduled()
        elif args.command == "sources":
            success = list_sources()
        else:
            logger.error(f"Unknown command: {args.command}")
            return 1

        return 0 if success else 1

    except KeyboardInterrupt:
        logger.info("Operation cancelled by user")
        return 130  # Standard exit code for SIGINT
    except Exception as e:
        logger.exception(f"Unhandled error: {str(e)}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
