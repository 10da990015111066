#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""
Static File Server
------------------
Entry point for running the server from a checkout:

    python run.py -c config.conf
"""

import os
import sys

# Add this directory to the path so the package imports without installing
sys.path.insert(0, os.path.abspath(os.path.dirname(__file__)))

from staticserver.cli import main


if __name__ == '__main__':
    sys.exit(main())
