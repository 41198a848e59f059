"""
Logging setup for the visualizer.

Modules log through ``logging.getLogger(__name__)``; the app entry point
calls ``setup_logging`` once with the configured level.
"""
import logging
import sys

_configured = False


def setup_logging(level: str = "INFO") -> None:
    """Configure root logging. Subsequent calls are no-ops."""
    global _configured
    if _configured:
        return

    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
        stream=sys.stdout,
        force=True,
    )
    _configured = True
