# loggly_syslog/main.py
"""Command-line entry point: forward lines from stdin to Loggly."""

import argparse
import logging
import sys
import time

from colorama import Fore, Style, init

from .config import load_config
from .encoder import SEVERITIES
from .errors import ConfigurationError
from .transport import LogglyTransport

# Initialize colorama for Windows compatibility
init(autoreset=True)


def setup_logging(verbose: bool = False) -> None:
    """Configure logging."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )


def parse_arguments(argv=None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description='Forward log lines to Loggly over TLS syslog',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Forward an application's output
  myapp 2>&1 | loggly-syslog --token $LOGGLY_TOKEN --tag myapp

  # Send a single message at error level
  loggly-syslog --message "disk full" --level error

  # Take settings from the loggly: section of a YAML file
  loggly-syslog --config loggly.yaml < events.log
        """
    )

    conn_group = parser.add_argument_group('Connection')
    conn_group.add_argument('--token', '-t', default=None,
                            help='Loggly customer token (default: config or LOGGLY_TOKEN)')
    conn_group.add_argument('--host', '-H', default=None, help='Loggly syslog host')
    conn_group.add_argument('--port', '-P', type=int, default=None, help='Loggly syslog port')
    conn_group.add_argument('--verify-certs', action='store_true', default=None,
                            help='Verify the server certificate chain')

    msg_group = parser.add_argument_group('Messages')
    msg_group.add_argument('--level', '-l', choices=list(SEVERITIES), default='info',
                           help='Level for forwarded lines (default: info)')
    msg_group.add_argument('--tag', action='append', dest='tags', default=None,
                           help='Tag to attach (repeatable)')
    msg_group.add_argument('--program', '-p', default=None, help='Program name')
    msg_group.add_argument('--message', '-m', default=None,
                           help='Send this message instead of reading stdin')
    msg_group.add_argument('--linger', type=float, default=5.0,
                           help='Seconds to wait for buffered lines to be delivered (default: 5)')

    config_group = parser.add_argument_group('Configuration')
    config_group.add_argument('--config', default='config.yaml',
                              help='Path to configuration file (default: config.yaml)')
    config_group.add_argument('--verbose', '-v', action='store_true', help='Enable verbose logging')

    return parser.parse_args(argv)


def print_connect(message: str) -> None:
    print(f"{Fore.GREEN}[CONNECT]{Style.RESET_ALL} {message}", file=sys.stderr)


def print_error(error: BaseException) -> None:
    print(f"{Fore.RED}[ERROR]{Style.RESET_ALL} {error}", file=sys.stderr)


def wait_for_delivery(transport: LogglyTransport, linger: float) -> None:
    """Give the connection a chance to come up and flush the buffer."""
    deadline = time.time() + linger
    while time.time() < deadline:
        if transport.connected and not transport.buffer and not transport.connection.backlog:
            return
        time.sleep(0.1)


def main(argv=None) -> int:
    """Main entry point."""
    args = parse_arguments(argv)
    setup_logging(args.verbose)

    try:
        config = load_config(
            args.config,
            token=args.token,
            host=args.host,
            port=args.port,
            tags=args.tags,
            program=args.program,
            verify_certs=args.verify_certs,
        )
    except ConfigurationError as e:
        logging.error(f"Invalid configuration: {e}")
        return 1
    except Exception as e:
        logging.error(f"Failed to load configuration: {e}")
        return 1

    transport = LogglyTransport(config, on_connect=print_connect, on_error=print_error)

    try:
        if args.message is not None:
            transport.log(args.level, args.message)
        else:
            for line in sys.stdin:
                line = line.rstrip('\r\n')
                if line:
                    transport.log(args.level, line)
        wait_for_delivery(transport, args.linger)
    except KeyboardInterrupt:
        print("\n\nReceived interrupt signal...")
    finally:
        transport.close()

    return 0


if __name__ == '__main__':
    sys.exit(main())
