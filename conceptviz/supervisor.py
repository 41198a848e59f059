"""
Supervisor for dynamically loaded panels.

A panel module is imported on demand the first time its tab is shown. If
the import fails it is retried once after a fixed delay; a second failure
substitutes a static fallback message for that panel only. Render errors
inside a mounted panel degrade the same way instead of propagating into
the other tabs.
"""
import asyncio
import importlib
import logging
from dataclasses import dataclass
from typing import Any, Optional

logger = logging.getLogger(__name__)

FALLBACK_MESSAGE = (
    "This panel could not be loaded right now. "
    "The other tabs still work; reload the page to try again."
)


@dataclass(frozen=True)
class PanelMount:
    panel: Any = None
    error: Optional[str] = None

    @property
    def ok(self):
        return self.error is None


def lazy_import(module_name):
    """Loader that imports a module by dotted name."""
    def _load():
        return importlib.import_module(module_name)
    _load.__name__ = f"import {module_name}"
    return _load


class PanelSupervisor:

    def __init__(self, loader, retries=1, retry_delay=1.5,
                 fallback_message=FALLBACK_MESSAGE, sleep=None):
        self.loader = loader
        self.retries = retries
        self.retry_delay = retry_delay
        self.fallback_message = fallback_message
        self._sleep = sleep or asyncio.sleep
        self._panel = None

    @property
    def current(self) -> PanelMount:
        """The cached panel, or the fallback if nothing has mounted yet."""
        if self._panel is None:
            return PanelMount(error=self.fallback_message)
        return PanelMount(panel=self._panel)

    async def mount(self) -> PanelMount:
        """Load the panel (cached after the first success) or return the fallback."""
        if self._panel is not None:
            return PanelMount(panel=self._panel)

        attempts = self.retries + 1
        for attempt in range(1, attempts + 1):
            try:
                self._panel = self.loader()
                return PanelMount(panel=self._panel)
            except Exception as e:
                name = getattr(self.loader, '__name__', repr(self.loader))
                if attempt < attempts:
                    logger.warning(
                        f"Panel load failed ({name}, attempt {attempt}/{attempts}): {e}; "
                        f"retrying in {self.retry_delay}s"
                    )
                    await self._sleep(self.retry_delay)
                else:
                    logger.error(f"Panel load failed ({name}) after {attempts} attempts: {e}")
        return PanelMount(error=self.fallback_message)

    def render(self, mount: PanelMount, fn_name, *args, **kwargs):
        """Call ``mount.panel.<fn_name>(...)``; on failure return (None, fallback message)."""
        if not mount.ok:
            return None, mount.error
        try:
            return getattr(mount.panel, fn_name)(*args, **kwargs), None
        except Exception:
            logger.exception(f"Panel render failed in {fn_name}")
            return None, self.fallback_message
