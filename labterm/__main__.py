#!/usr/bin/env python
"""LabTerm CLI entry point.

Run the training terminal with: python -m labterm
Or after installation: labterm

Usage:
    labterm [OPTIONS]                      Start the SSH training server
    labterm serve [--host H] [--port P]    Same, explicitly
    labterm shell                          Local interactive terminal
    labterm exec "<line>" [--json]         Execute one line and print the result

Options:
    --log-level LEVEL   Logging level (default: INFO)
    --version           Show version and exit
    --help              Show this message and exit
"""

from __future__ import annotations

import argparse
import json
import logging
import signal
import sys
from typing import List, Optional

from colorama import Fore, Style

from . import __version__
from .config import get_config

LOGGER = logging.getLogger("labterm")


def setup_logging(level: str) -> None:
    """Configure logging for the application."""
    config = get_config().logging
    numeric_level = getattr(logging, level.upper(), logging.INFO)
    handlers: List[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    if config.file is not None:
        config.file.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(config.file, encoding="utf-8"))
    logging.basicConfig(level=numeric_level, format=config.format, handlers=handlers)


def print_banner() -> None:
    """Print the LabTerm startup banner."""
    banner = r"""
    _          _    _____
   | |    __ _| |__|_   _|__ _ __ _ __ ___
   | |   / _` | '_ \ | |/ _ \ '__| '_ ` _ \
   | |__| (_| | |_) || |  __/ |  | | | | | |
   |_____\__,_|_.__/ |_|\___|_|  |_| |_| |_|

    Penetration-Testing Training Terminal v{}
    """.format(__version__)
    print(Fore.CYAN + banner + Style.RESET_ALL)


def run_server(host: str, port: int, metrics: bool) -> None:
    """Run the SSH training server."""
    # Import here so "exec" and "shell" never touch paramiko key generation
    from .metrics import start_metrics_server
    from .server import LabTermServer

    if metrics:
        metrics_config = get_config().metrics
        start_metrics_server(metrics_config.port, metrics_config.host)
        logging.info(
            "Metrics available on http://%s:%d/metrics", metrics_config.host, metrics_config.port
        )

    server = LabTermServer(host=host, port=port)

    print(f"\nSSH training terminal listening on {host}:{port}")
    print(
        f"Connect with: ssh student@{host if host != '0.0.0.0' else '127.0.0.1'} -p {port}"
    )
    print("Press Ctrl+C to stop\n")

    try:
        server.run()
    except KeyboardInterrupt:
        logging.info("Received interrupt signal, shutting down...")
        server.shutdown()


def cmd_serve(args: argparse.Namespace) -> int:
    config = get_config()
    host = args.host or config.ssh.host
    port = args.port or config.ssh.port
    metrics = args.metrics or config.metrics.enabled

    print_banner()

    def signal_handler(sig, frame):
        print("\n")
        logging.info("Shutting down LabTerm...")
        sys.exit(0)

    signal.signal(signal.SIGTERM, signal_handler)

    try:
        run_server(host, port, metrics)
    except OSError as exc:
        print(Fore.RED + f"[-] Could not start server: {exc}" + Style.RESET_ALL)
        return 1
    return 0


def cmd_shell(args: argparse.Namespace) -> int:
    """Run a local terminal on stdin/stdout."""
    from .engine import SimulationEngine

    engine = SimulationEngine()
    state = engine.session()
    print("LabTerm local shell. Type 'exit' or press Ctrl+D to leave.\n")

    while True:
        try:
            line = input(engine.prompt())
        except EOFError:
            print()
            return 0
        except KeyboardInterrupt:
            print("^C")
            continue

        result = engine.execute(line)
        if line.strip() in ("clear", "cls"):
            print("\x1b[2J\x1b[H", end="")
        elif result.output:
            print(result.output)
        if result.points_awarded:
            print(Fore.GREEN + f"[+{result.points_awarded} points]" + Style.RESET_ALL)
        if state.logout_requested:
            print("logout")
            return 0


def cmd_exec(args: argparse.Namespace) -> int:
    """Execute one line and print its output or its JSON result."""
    from .engine import SimulationEngine

    engine = SimulationEngine()
    result = engine.execute(args.line, user_id=args.user)
    if args.json:
        print(json.dumps(result.to_dict(), indent=2))
    elif result.output:
        print(result.output)
    return 0 if result.success else 1


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="labterm",
        description="LabTerm - simulated penetration-testing training terminal",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    labterm                            Start on default port 2222
    labterm serve --port 2200 --metrics
    labterm shell                      Practice locally without SSH
    labterm exec "nmap -sV 192.168.1.100"
    labterm exec "ls -la | grep txt" --json

Environment variables:
    LABTERM_SSH_HOST         SSH bind address
    LABTERM_SSH_PORT         SSH port
    LABTERM_SSH_PASSWORD     Required password (empty accepts any)
    LABTERM_LOG_LEVEL        Logging level
    LABTERM_REQUIRE_METERPRETER_SESSION
                             Gate Meterpreter commands on an open session
        """,
    )
    parser.add_argument(
        "--log-level",
        "-l",
        default=None,
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Logging level (default: INFO, or LABTERM_LOG_LEVEL)",
    )
    parser.add_argument(
        "--version",
        "-v",
        action="version",
        version=f"LabTerm {__version__}",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    serve_parser = subparsers.add_parser("serve", help="Start the SSH training server")
    serve_parser.add_argument("--host", default=None, help="SSH bind address")
    serve_parser.add_argument("--port", "-p", type=int, default=None, help="SSH port")
    serve_parser.add_argument(
        "--metrics", action="store_true", help="Expose Prometheus metrics"
    )
    serve_parser.set_defaults(func=cmd_serve)

    shell_parser = subparsers.add_parser("shell", help="Local interactive terminal")
    shell_parser.set_defaults(func=cmd_shell)

    exec_parser = subparsers.add_parser("exec", help="Execute one command line")
    exec_parser.add_argument("line", help="Command line, quoted")
    exec_parser.add_argument("--user", default=None, help="CTF user id")
    exec_parser.add_argument(
        "--json", action="store_true", help="Print the full result as JSON"
    )
    exec_parser.set_defaults(func=cmd_exec)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for the CLI."""
    parser = build_parser()
    args = parser.parse_args(argv)

    setup_logging(args.log_level or get_config().logging.level)

    if args.command is None:
        # Default: run the server with settings from the environment
        LOGGER.debug("No subcommand given, serving")
        args.host, args.port, args.metrics = None, None, False
        return cmd_serve(args)

    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
