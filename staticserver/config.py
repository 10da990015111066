#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""
Configuration Module for the Static File Server
-----------------------------------------------
Loads the flat ``key=value`` configuration file into an immutable
ServerSettings record. The record is built once at startup and shared,
read-only, by every request handler.

Example config.conf::

    # listener
    ip-address=127.0.0.1
    port=8080
    root=./www
    index=index.html;index.htm
    404-error=/404.html
    403-error=/403.html
"""

import logging

from .errors import ConfigError

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = "config.conf"


class ServerSettings:
    """
    Immutable server settings.

    Values are exposed through read-only properties; any attempt to assign
    an attribute after construction raises AttributeError.
    """

    # Default settings, keyed by configuration file key
    DEFAULT_SETTINGS = {
        "ip-address": "",
        "port": "8080",
        "root": ".",
        "index": ("index.html",),
        "404-error": "404.html",
        "403-error": "403.html",
    }

    def __init__(self, bind_address=None, bind_port=None, root_directory=None,
                 index_files=None, not_found_page=None, forbidden_page=None):
        values = dict(self.DEFAULT_SETTINGS)
        overrides = {
            "ip-address": bind_address,
            "port": bind_port,
            "root": root_directory,
            "index": tuple(index_files) if index_files is not None else None,
            "404-error": not_found_page,
            "403-error": forbidden_page,
        }
        values.update({key: value for key, value in overrides.items() if value is not None})
        object.__setattr__(self, "_settings", values)

    def __setattr__(self, name, value):
        raise AttributeError(f"ServerSettings is read-only (cannot set {name!r})")

    def __delattr__(self, name):
        raise AttributeError(f"ServerSettings is read-only (cannot delete {name!r})")

    def __eq__(self, other):
        if not isinstance(other, ServerSettings):
            return NotImplemented
        return self._settings == other._settings

    def __hash__(self):
        return hash(tuple(sorted(self._settings.items())))

    def __repr__(self):
        return (f"ServerSettings(bind_address={self.bind_address!r}, bind_port={self.bind_port!r}, "
                f"root_directory={self.root_directory!r}, index_files={self.index_files!r}, "
                f"not_found_page={self.not_found_page!r}, forbidden_page={self.forbidden_page!r})")

    @property
    def bind_address(self):
        return self._settings["ip-address"]

    @property
    def bind_port(self):
        return self._settings["port"]

    @property
    def root_directory(self):
        return self._settings["root"]

    @property
    def index_files(self):
        return self._settings["index"]

    @property
    def not_found_page(self):
        return self._settings["404-error"]

    @property
    def forbidden_page(self):
        return self._settings["403-error"]

    @property
    def listen_address(self):
        """``host:port`` for the listener, with IPv6 literals bracketed."""
        host = self.bind_address
        if ":" in host:
            host = f"[{host}]"
        return f"{host}:{self.bind_port}"


def parse_config(text):
    """
    Parse configuration text into ServerSettings.

    Args:
        text: Contents of a configuration file

    Returns:
        ServerSettings: Parsed settings

    Raises:
        ConfigError: A non-comment line has no '=' separator
    """
    values = {}

    for line_number, line in enumerate(text.split("\n"), start=1):
        line = line.strip()

        # Skip empty lines and comments
        if not line or line.startswith("#"):
            continue

        if "=" not in line:
            raise ConfigError(f"Invalid configuration line (line {line_number}): {line}")

        key, value = line.split("=", 1)
        key = key.strip()
        value = value.strip()

        if key == "index":
            values[key] = tuple(name.strip() for name in value.split(";") if name.strip())
        elif key in ServerSettings.DEFAULT_SETTINGS:
            values[key] = value
        else:
            logger.warning(f"Unknown configuration item (line {line_number}): {line}")

    return ServerSettings(
        bind_address=values.get("ip-address"),
        bind_port=values.get("port"),
        root_directory=values.get("root"),
        index_files=values.get("index"),
        not_found_page=values.get("404-error"),
        forbidden_page=values.get("403-error"),
    )


def load_config(config_path=DEFAULT_CONFIG_PATH):
    """
    Load settings from a configuration file.

    Args:
        config_path: Path to the configuration file (default: config.conf)

    Returns:
        ServerSettings: Loaded settings

    Raises:
        ConfigError: The file cannot be read or contains a malformed line
    """
    try:
        with open(config_path, "r", encoding="utf-8") as f:
            text = f.read()
    except (OSError, UnicodeDecodeError) as e:
        raise ConfigError(f"Error reading configuration file: {e}") from e

    settings = parse_config(text)
    logger.info(f"Loaded configuration from {config_path}")
    return settings
