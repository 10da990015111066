#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""
Utility Module for the Static File Server
-----------------------------------------
Contains helper functions used throughout the server:
- Logging setup with colored console output
- MIME type detection
- Path cleaning and containment checks
- HTTP date and Range header helpers
"""

import os
import time
import calendar
import logging
import mimetypes
import posixpath
from logging.handlers import RotatingFileHandler

import colorama
from colorama import Fore, Style

colorama.init(autoreset=True)

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
DATE_FORMAT = '%Y-%m-%d %H:%M:%S'


class ColoredFormatter(logging.Formatter):
    """Formatter that colors console records by level."""

    FORMATS = {
        logging.DEBUG: Fore.CYAN + LOG_FORMAT + Style.RESET_ALL,
        logging.INFO: Fore.GREEN + LOG_FORMAT + Style.RESET_ALL,
        logging.WARNING: Fore.YELLOW + LOG_FORMAT + Style.RESET_ALL,
        logging.ERROR: Fore.RED + LOG_FORMAT + Style.RESET_ALL,
        logging.CRITICAL: Fore.RED + Style.BRIGHT + LOG_FORMAT + Style.RESET_ALL
    }

    def format(self, record):
        log_fmt = self.FORMATS.get(record.levelno, self.FORMATS[logging.INFO])
        formatter = logging.Formatter(log_fmt, datefmt=DATE_FORMAT)
        return formatter.format(record)


def setup_logging(log_level='INFO', log_file=None, max_size=10485760, backup_count=5, use_colored_logging=True):
    """
    Set up logging configuration.

    The audit log (latest.log) is written separately by AuditLogger; the
    optional log_file here only receives operational messages.

    Args:
        log_level: Logging level (default: INFO)
        log_file: Log file path (default: None, console only)
        max_size: Maximum log file size in bytes (default: 10MB)
        backup_count: Number of backup logs to keep (default: 5)
        use_colored_logging: Whether to use colored logging in console (default: True)

    Returns:
        logging.Logger: Root logger instance
    """
    log_level_value = getattr(logging, log_level.upper(), logging.INFO)

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level_value)

    # Remove existing handlers
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    if log_file:
        try:
            file_handler = RotatingFileHandler(
                log_file,
                maxBytes=max_size,
                backupCount=backup_count
            )
            file_handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT))
            root_logger.addHandler(file_handler)
        except OSError as e:
            print(f"Error setting up log file: {e}")

    console_handler = logging.StreamHandler()
    if use_colored_logging:
        console_handler.setFormatter(ColoredFormatter())
    else:
        console_handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT))

    root_logger.addHandler(console_handler)
    return root_logger


def is_path_safe(base_path, target_path):
    """
    Check if a path is safe (doesn't escape the base directory).

    Args:
        base_path: Base directory path
        target_path: Target path to check

    Returns:
        bool: True if path is safe, False otherwise
    """
    base_path = os.path.normpath(os.path.abspath(base_path))
    target_path = os.path.normpath(os.path.abspath(target_path))

    if target_path == base_path:
        return True
    return target_path.startswith(base_path.rstrip(os.sep) + os.sep)


def clean_url_path(path):
    """
    Return the canonical form of a URL path.

    Collapses duplicate slashes and resolves '.' and '..' segments without
    climbing above '/'. A trailing slash is kept.
    """
    if not path:
        return '/'
    if not path.startswith('/'):
        path = '/' + path

    cleaned = posixpath.normpath(path)
    # normpath keeps a leading '//' as-is
    cleaned = '/' + cleaned.lstrip('/')

    if path.endswith('/') and cleaned != '/':
        cleaned += '/'
    return cleaned


def get_mime_type(filepath):
    """
    Get MIME type for a file from its extension.

    Args:
        filepath: Path to the file

    Returns:
        str: MIME type, 'application/octet-stream' when unknown
    """
    mime_type, _ = mimetypes.guess_type(filepath)
    return mime_type or 'application/octet-stream'


def human_readable_size(size):
    """
    Convert size in bytes to human readable format.

    Args:
        size: Size in bytes

    Returns:
        str: Human readable size string
    """
    for unit in ['B', 'KB', 'MB', 'GB', 'TB']:
        if size < 1024 or unit == 'TB':
            return f"{size:.1f} {unit}" if size % 1 else f"{int(size)} {unit}"
        size /= 1024


def parse_http_date(date_string):
    """
    Parse an HTTP date string.

    Args:
        date_string: HTTP date string

    Returns:
        float: UNIX timestamp or None if parsing failed
    """
    formats = [
        '%a, %d %b %Y %H:%M:%S GMT',  # RFC 7231 (e.g., "Sun, 06 Nov 1994 08:49:37 GMT")
        '%A, %d-%b-%y %H:%M:%S GMT',  # RFC 850 (e.g., "Sunday, 06-Nov-94 08:49:37 GMT")
        '%a %b %d %H:%M:%S %Y'        # ANSI C's asctime() (e.g., "Sun Nov  6 08:49:37 1994")
    ]

    for fmt in formats:
        try:
            time_struct = time.strptime(date_string.strip(), fmt)
            return calendar.timegm(time_struct)
        except ValueError:
            continue

    return None


def format_http_date(timestamp=None):
    """
    Format a timestamp as an HTTP date string.

    Args:
        timestamp: UNIX timestamp (default: current time)

    Returns:
        str: HTTP date string in RFC 7231 format
    """
    if timestamp is None:
        timestamp = time.time()
    return time.strftime('%a, %d %b %Y %H:%M:%S GMT', time.gmtime(timestamp))


def parse_range(header, size):
    """
    Parse a Range header against a resource of the given size.

    Args:
        header: Value of the Range header (may be empty)
        size: Size of the resource in bytes

    Returns:
        list: (start, length) tuples; empty when no range was requested

    Raises:
        ValueError: The header is malformed or no range overlaps the resource
    """
    if not header:
        return []
    if not header.startswith('bytes='):
        raise ValueError("invalid range")

    ranges = []
    no_overlap = False
    for item in header[len('bytes='):].split(','):
        item = item.strip()
        if not item:
            continue
        if '-' not in item:
            raise ValueError("invalid range")
        start_s, end_s = (part.strip() for part in item.split('-', 1))

        if start_s == '':
            # suffix-length: the last N bytes
            if not end_s.isdigit():
                raise ValueError("invalid range")
            length = min(int(end_s), size)
            if length == 0:
                no_overlap = True
                continue
            ranges.append((size - length, length))
            continue

        if not start_s.isdigit():
            raise ValueError("invalid range")
        start = int(start_s)
        if start >= size:
            no_overlap = True
            continue

        if end_s == '':
            end = size - 1
        else:
            if not end_s.isdigit():
                raise ValueError("invalid range")
            end = min(int(end_s), size - 1)
            if end < start:
                raise ValueError("invalid range")
        ranges.append((start, end - start + 1))

    if not ranges and no_overlap:
        raise ValueError("invalid range: failed to overlap")
    return ranges


mimetypes.init()
mimetypes.add_type('text/javascript', '.js')
mimetypes.add_type('text/css', '.css')
mimetypes.add_type('image/x-icon', '.ico')
mimetypes.add_type('image/svg+xml', '.svg')
mimetypes.add_type('application/json', '.json')
