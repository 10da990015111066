#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""
Static File Server
------------------
A minimal static file server built on Python's socket library.

This package provides:
- A flat key=value configuration file
- Index-file fallback for the root path
- Custom 404/403 pages
- Range and conditional requests
- An audit log line per served file
- Graceful shutdown on SIGINT/SIGTERM
"""

__version__ = '1.0.0'

from .config import ServerSettings, load_config
from .audit import AuditLogger, AuditRecord
from .handler import RequestHandler
from .server import WebServer
from .errors import StaticServerError, ConfigError, ServerStartError, ShutdownTimeoutError
from .utils import setup_logging

# Make these classes available at the package level
__all__ = [
    'ServerSettings', 'load_config', 'AuditLogger', 'AuditRecord', 'RequestHandler', 'WebServer',
    'StaticServerError', 'ConfigError', 'ServerStartError', 'ShutdownTimeoutError', 'setup_logging'
]
