"""Main entry point for the netreach reachability monitor."""

import argparse
import logging
import signal
import sys
from typing import Any, Dict, NoReturn, Optional

from netreach import __version__
from netreach.config import ConfigError, ConfigManager
from netreach.reachability import (
    MainLoop,
    NetworkStatus,
    NotifierError,
    Reachability,
    TargetCreationError,
    get_facility,
)
from netreach.reachability.radio import get_radio_provider

logger = logging.getLogger(__name__)


def setup_logging(debug: bool = False) -> None:
    """Configure logging for the application.

    Args:
        debug: If True, set log level to DEBUG, otherwise INFO
    """
    log_level = logging.DEBUG if debug else logging.INFO
    logging.basicConfig(
        level=log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def parse_args(argv: Optional[list] = None) -> argparse.Namespace:
    """Parse command-line arguments.

    Args:
        argv: Arguments to parse (default: sys.argv)

    Returns:
        Parsed command-line arguments
    """
    parser = argparse.ArgumentParser(
        description="netreach - watch how this machine reaches the network"
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging",
    )
    parser.add_argument(
        "--mock",
        action="store_true",
        help="Use the mock reachability facility (for testing)",
    )
    parser.add_argument(
        "--config",
        type=str,
        default=None,
        help="Path to configuration file (default: built-in defaults)",
    )
    parser.add_argument(
        "--web",
        action="store_true",
        help="Start the web status interface",
    )
    target = parser.add_mutually_exclusive_group()
    target.add_argument("--host", type=str, help="Hostname to monitor")
    target.add_argument("--address", type=str, help="IP address to monitor")
    return parser.parse_args(argv)


def _load_config(config_path: Optional[str]) -> Optional[ConfigManager]:
    """Load and validate configuration.

    Args:
        config_path: Path to configuration file, or None for defaults

    Returns:
        Initialized ConfigManager, or None when no file was given

    Raises:
        SystemExit: If configuration is invalid
    """
    if config_path is None:
        return None
    try:
        return ConfigManager(user_config_path=config_path)
    except ConfigError as e:
        logger.error("Configuration error: %s", e)
        sys.exit(1)


def build_reachability(
    args: argparse.Namespace, config: Optional[ConfigManager], delivery: MainLoop
) -> Reachability:
    """Create the monitor described by the command line and configuration.

    Command-line targets override the configured target.

    Args:
        args: Parsed command-line arguments
        config: Configuration manager, or None for defaults
        delivery: Context on which observers are called

    Returns:
        Reachability monitor

    Raises:
        TargetCreationError: If the target cannot be created
    """
    target: Dict[str, Any] = config.get_target_config() if config else {}
    poll_interval = config.get("monitor.poll_interval", 2.0) if config else 2.0
    radio_kind = config.get("radio.provider", "none") if config else "none"

    options: Dict[str, Any] = {
        "facility": get_facility(mock=args.mock, poll_interval=poll_interval),
        "is_mobile_device": config.get_mobile_device() if config else None,
        "radio": get_radio_provider(radio_kind),
        "delivery": delivery,
    }

    hostname = args.host or (None if args.address else target.get("hostname"))
    address = args.address or (None if args.host else target.get("address"))

    if hostname:
        logger.info("Monitoring hostname: %s", hostname)
        return Reachability.with_hostname(hostname, **options)
    if address:
        logger.info("Monitoring address: %s", address)
        return Reachability.with_address(address, **options)
    logger.info("Monitoring default route")
    return Reachability.default_route(**options)


def _start_web_server(reachability: Reachability, config: Optional[ConfigManager]) -> None:
    """Start the web status interface in a background thread.

    Args:
        reachability: Monitor to expose
        config: Configuration manager, or None for defaults
    """
    # pylint: disable=import-outside-toplevel
    from threading import Thread

    import uvicorn

    from netreach.web.app import create_app

    host = config.get("web.host", "127.0.0.1") if config else "127.0.0.1"
    port = config.get("web.port", 7575) if config else 7575
    web_app = create_app(reachability)

    def run_web_server() -> None:
        uvicorn.run(web_app, host=host, port=port, log_level="warning")

    web_thread = Thread(target=run_web_server, daemon=True, name="WebServer")
    web_thread.start()
    logger.info("  - Web status interface started at http://%s:%d", host, port)


def log_status(status: NetworkStatus) -> None:
    """Observer that logs every published status."""
    logger.info("Network status: %s", status.description)


def main(argv: Optional[list] = None) -> NoReturn:
    """Main application entry point."""
    args = parse_args(argv)
    setup_logging(args.debug)

    logger.info("=" * 60)
    logger.info("netreach v%s", __version__)
    logger.info("=" * 60)

    if args.mock:
        logger.info("Running in MOCK mode (no network access)")

    config = _load_config(args.config)
    main_loop = MainLoop()

    try:
        reachability = build_reachability(args, config, main_loop)
    except (TargetCreationError, ValueError) as e:
        logger.error("Failed to create monitor: %s", e)
        sys.exit(1)

    logger.info("Initial status: %s", reachability.current_status().description)
    reachability.subscribe(log_status)

    try:
        reachability.start_watching()
    except NotifierError as e:
        logger.error("Failed to start watching: %s", e)
        reachability.close()
        sys.exit(1)

    web_enabled = args.web or (config.get("web.enabled", False) if config else False)
    if web_enabled:
        logger.info("Starting web status interface...")
        try:
            _start_web_server(reachability, config)
        except Exception as e:
            logger.error("Failed to start web status interface: %s", e)
            logger.warning("Continuing without web interface...")

    # Set up signal handlers for graceful shutdown
    shutdown_requested = False

    def signal_handler(signum: int, _frame: object) -> None:
        nonlocal shutdown_requested
        if shutdown_requested:
            logger.warning("Force quit!")
            sys.exit(1)
        logger.info("Shutdown requested (signal %d)...", signum)
        shutdown_requested = True

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    logger.info("Watching for changes. Press Ctrl+C to stop")

    # Main event loop: observers run here
    try:
        while not shutdown_requested:
            main_loop.run_pending(timeout=0.1)
    except KeyboardInterrupt:
        logger.info("Shutting down...")

    reachability.close()
    logger.info("Goodbye!")
    sys.exit(0)


if __name__ == "__main__":
    main()
