#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""
Exceptions raised by the static file server.

Only conditions that stop the server from serving any traffic are raised
out of the package; everything scoped to a single request is answered
inside the connection thread.
"""


class StaticServerError(Exception):
    """Base class for fatal server errors."""


class ConfigError(StaticServerError):
    """The configuration file is unreadable or malformed."""


class ServerStartError(StaticServerError):
    """The listener could not be bound."""


class ShutdownTimeoutError(StaticServerError):
    """In-flight requests did not finish inside the grace window."""
