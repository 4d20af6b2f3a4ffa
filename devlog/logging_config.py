"""Logging setup for job runs"""

import logging

# LOG_LEVEL uses the short names (warn); the logging module wants WARNING.
_ALIASES = {"warn": "WARNING"}


def configure_logging(level: str = "info") -> None:
    """Configure root logging once per process"""
    name = _ALIASES.get(level.lower(), level.upper())
    logging.basicConfig(
        level=getattr(logging, name, logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
