"""
CLI layer for resilient-fetch.

Terminal transport only: argument parsing, coloured output and table
formatting. The retry and timeout logic lives in ``resilient_fetch.execution``.

Entry point::

    resilient-fetch --help
"""

from resilient_fetch.cli.app import app

__all__ = ["app"]
