#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""
Command line entry point for the static file server.
"""

import sys
import logging
import argparse

from .config import DEFAULT_CONFIG_PATH, load_config
from .errors import StaticServerError
from .server import WebServer
from .utils import setup_logging


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description='Minimal static file server')
    parser.add_argument('-c', '--config', type=str, default=DEFAULT_CONFIG_PATH,
                        help=f'Path to configuration file (default: {DEFAULT_CONFIG_PATH})')

    # Logging options
    parser.add_argument('--log-level', type=str, default='INFO',
                        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'],
                        help='Logging level')
    parser.add_argument('--log-file', type=str, help='Path to operational log file')
    parser.add_argument('--no-color', action='store_true', help='Disable colored logging')

    return parser.parse_args(argv)


def main(argv=None):
    """
    Main entry point for the server.

    Returns:
        int: Process exit status
    """
    args = parse_args(argv)
    setup_logging(
        log_level=args.log_level,
        log_file=args.log_file,
        use_colored_logging=not args.no_color
    )
    logger = logging.getLogger('staticserver')

    try:
        settings = load_config(args.config)
        server = WebServer(settings)
        server.install_signal_handlers()
        server.start()
        server.wait_for_shutdown()
    except StaticServerError as e:
        logger.critical(str(e))
        return 1

    return 0


if __name__ == '__main__':
    sys.exit(main())
