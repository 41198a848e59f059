"""
Process-wide loader for the precomputed PCA presets.

Lifecycle:
    UNINITIALIZED --load()--> LOADING --ok--> READY
                                      --error--> FAILED --load()--> LOADING

Concurrent callers share one in-flight task, so the fixture is fetched at
most once per process. A failure clears the in-flight task so the next
call retries; nothing retries automatically.
"""
import asyncio
import enum
import json
import logging

import httpx

logger = logging.getLogger(__name__)

SCHEMA_VERSION = 1


class FixtureLoadError(Exception):
    """The PCA presets could not be fetched or parsed."""


class LoaderState(enum.Enum):
    UNINITIALIZED = "uninitialized"
    LOADING = "loading"
    READY = "ready"
    FAILED = "failed"


def _is_url(source):
    return source.startswith(("http://", "https://"))


def _read_json_file(path):
    with open(path) as f:
        return json.load(f)


async def fetch_fixture(source):
    """Fetch and parse the fixture from a URL or a local path."""
    if _is_url(source):
        async with httpx.AsyncClient() as client:
            try:
                response = await client.get(source)
            except httpx.HTTPError as e:
                raise FixtureLoadError(f"Failed to load PCA presets ({e})") from e
        if not response.is_success:
            raise FixtureLoadError(f"Failed to load PCA presets ({response.status_code})")
        try:
            return response.json()
        except ValueError as e:
            raise FixtureLoadError(f"PCA presets are not valid JSON: {e}") from e

    try:
        return await asyncio.to_thread(_read_json_file, source)
    except OSError as e:
        raise FixtureLoadError(f"Failed to load PCA presets ({e.strerror or e})") from e
    except ValueError as e:
        raise FixtureLoadError(f"PCA presets are not valid JSON: {e}") from e


def check_schema(artifact):
    """Warn (never fail) when the producer's schema version differs."""
    version = artifact.get('meta', {}).get('schema_version')
    if version != SCHEMA_VERSION:
        logger.warning(
            f"PCA presets schema_version={version!r}, expected {SCHEMA_VERSION}; "
            f"reading fields optimistically"
        )


class FixtureLoader:
    """Memoized one-shot loader. ``fetch`` is an async callable taking the source."""

    def __init__(self, source, fetch=None):
        self.source = source
        self._fetch = fetch or fetch_fixture
        self._task = None
        self._data = None
        self._state = LoaderState.UNINITIALIZED
        self._error = None

    @property
    def state(self):
        return self._state

    @property
    def data(self):
        """The cached fixture, or None until READY."""
        return self._data

    @property
    def error(self):
        return self._error

    async def _fetch_and_cache(self):
        try:
            artifact = await self._fetch(self.source)
        except FixtureLoadError as e:
            self._fail(e)
            raise
        except Exception as e:
            self._fail(e)
            raise FixtureLoadError(str(e)) from e
        check_schema(artifact)
        self._data = artifact
        self._state = LoaderState.READY
        self._task = None
        logger.info(f"Loaded PCA presets from {self.source}")
        return artifact

    def _fail(self, error):
        self._task = None
        self._state = LoaderState.FAILED
        self._error = str(error)
        logger.warning(f"Failed to load PCA presets from {self.source}: {error}")

    async def load(self):
        if self._state is LoaderState.READY:
            return self._data
        if self._task is None:
            self._state = LoaderState.LOADING
            self._error = None
            self._task = asyncio.ensure_future(self._fetch_and_cache())
            # mark the error retrieved even if every awaiter was cancelled
            self._task.add_done_callback(lambda t: t.cancelled() or t.exception())
        # shield: a cancelled caller must not cancel the shared fetch
        return await asyncio.shield(self._task)


_default_loader = None


def get_default_loader(source=None):
    """The process-wide loader (created on first use from the settings)."""
    global _default_loader
    if _default_loader is None:
        if source is None:
            from conceptviz.config import load_settings
            source = load_settings().pca_fixture
        _default_loader = FixtureLoader(source)
    return _default_loader


def reset_default_loader():
    global _default_loader
    _default_loader = None
