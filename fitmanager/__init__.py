"""FitManager client: session, re-auth gate, metric repositories and aggregation.

Modules: config, errors, models, session, api, repository, gate, aggregator,
dashboard, charts, context.
"""
import logging
import sys

from . import config

__all__ = [
    'aggregator',
    'api',
    'charts',
    'config',
    'context',
    'dashboard',
    'errors',
    'gate',
    'models',
    'repository',
    'session',
    'configure_logging',
]

__version__ = "0.1.0"


def configure_logging(level: str = config.LOG_LEVEL) -> None:
    """Send package logs to stdout with timestamps. Safe to call on every rerun."""
    logger = logging.getLogger("fitmanager")
    if any(getattr(h, "_fitmanager", False) for h in logger.handlers):
        return
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter('%(asctime)s %(levelname)s %(name)s: %(message)s'))
    handler._fitmanager = True
    logger.addHandler(handler)
    logger.setLevel(getattr(logging, level, logging.INFO))
