"""Logging configuration helpers for the bundler playground."""
from __future__ import annotations

import logging
import os

logger = logging.getLogger("bundlepad")

_handler = logging.StreamHandler()
_formatter = logging.Formatter("%(levelname)s %(message)s")
_handler.setFormatter(_formatter)
logger.addHandler(_handler)
logger.setLevel(os.environ.get("BUNDLEPAD_LOG", "INFO"))


def set_verbose(verbose: bool) -> None:
    """Lower the package level to DEBUG to trace build scheduling."""

    if verbose:
        logger.setLevel(logging.DEBUG)
