"""
Repository Aggregator.

This module fetches plugin manifests from the primary repository and every
enabled third-party repository and publishes them as one catalog.

Key features:
- Background refresh returning a Future, one refresh in flight at a time
- Immutable CatalogSnapshot swapped as a single reference
- All-or-nothing: any failing repository leaves the catalog unset
"""

import logging
import threading
from collections.abc import Callable
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from enum import Enum

import httpx

from plugmaster.repository import USER_AGENT
from plugmaster.repository.definition import PluginDefinition, parse_definition_list

logger = logging.getLogger(__name__)


class CatalogState(Enum):
    """Freshness of the published catalog."""

    UNKNOWN = "unknown"
    IN_PROGRESS = "in_progress"
    SUCCESS = "success"
    FAIL = "fail"
    FAIL_THIRD_REPO = "fail_third_repo"


@dataclass(frozen=True)
class CatalogSnapshot:
    """
    A published (state, catalog) pair.

    Attributes:
        state: Refresh state
        plugins: Merged definitions in fetch order; None unless state is SUCCESS
    """

    state: CatalogState
    plugins: tuple[PluginDefinition, ...] | None = None

    def find(self, internal_name: str) -> PluginDefinition | None:
        """
        Look up a plugin by internal name.

        When several repositories publish the same internal name, the entry
        fetched last wins.
        """
        if self.plugins is None:
            return None
        for definition in reversed(self.plugins):
            if definition.internal_name == internal_name:
                return definition
        return None

    def search(self, query: str) -> list[PluginDefinition]:
        """Case-insensitive substring match on internal and display name."""
        if self.plugins is None:
            return []
        needle = query.lower()
        return [
            d
            for d in self.plugins
            if needle in d.internal_name.lower() or needle in d.name.lower()
        ]


class RepositoryAggregator:
    """
    Merged plugin catalog with an observable refresh state.

    Readers use `snapshot` (or `state`/`catalog`) without blocking; both
    fields always come from the same published snapshot.

    Example:
        aggregator = RepositoryAggregator(settings.repo_urls)
        aggregator.refresh()
        aggregator.wait(timeout=30)
        if aggregator.state is CatalogState.SUCCESS:
            foo = aggregator.snapshot.find("Foo")
    """

    def __init__(
        self,
        repo_urls: Callable[[], list[str]],
        timeout: float = 30.0,
        transport: httpx.BaseTransport | None = None,
    ):
        """
        Initialize RepositoryAggregator.

        Args:
            repo_urls: Returns the repository URLs to fetch, primary first
            timeout: HTTP timeout in seconds
            transport: Optional httpx transport (used by tests)
        """
        self._repo_urls = repo_urls
        self._timeout = timeout
        self._transport = transport
        self._snapshot = CatalogSnapshot(CatalogState.UNKNOWN)
        self._lock = threading.RLock()
        self._future: Future[CatalogSnapshot] | None = None
        self._done = threading.Event()
        self._done.set()
        self._executor = ThreadPoolExecutor(
            max_workers=1, thread_name_prefix="plugmaster-refresh"
        )

    @property
    def snapshot(self) -> CatalogSnapshot:
        return self._snapshot

    @property
    def state(self) -> CatalogState:
        return self._snapshot.state

    @property
    def catalog(self) -> tuple[PluginDefinition, ...] | None:
        return self._snapshot.plugins

    def refresh(self) -> "Future[CatalogSnapshot]":
        """
        Start a background refresh.

        The catalog is cleared immediately and the state becomes IN_PROGRESS.
        If a refresh is already running, its future is returned instead.

        Returns:
            Future resolving to the published snapshot
        """
        with self._lock:
            if self._future is not None and not self._future.done():
                return self._future

            # Raises RuntimeError after close(); nothing has changed yet.
            future = self._executor.submit(self._run)
            self._future = future
            self._done.clear()
            self._snapshot = CatalogSnapshot(CatalogState.IN_PROGRESS)
            future.add_done_callback(self._finished)
            return future

    def refresh_sync(self) -> CatalogSnapshot:
        """Refresh and block until the new snapshot is published."""
        return self.refresh().result()

    def wait(self, timeout: float | None = None) -> bool:
        """
        Block until no refresh is in flight.

        Returns:
            False if the timeout expired first
        """
        return self._done.wait(timeout)

    def close(self) -> None:
        self._executor.shutdown(wait=True)

    def _run(self) -> CatalogSnapshot:
        try:
            snapshot = self._fetch_all()
        except Exception:
            logger.exception("Plugin catalog refresh crashed")
            snapshot = CatalogSnapshot(CatalogState.FAIL)
        # Waits for refresh() to publish IN_PROGRESS before overwriting it.
        with self._lock:
            self._snapshot = snapshot
        return snapshot

    def _finished(self, future: "Future[CatalogSnapshot]") -> None:
        # A late callback from an older refresh must not release wait().
        with self._lock:
            if future is self._future:
                self._done.set()

    def _fetch_all(self) -> CatalogSnapshot:
        urls = list(self._repo_urls())

        try:
            plugins: list[PluginDefinition] = []
            with httpx.Client(
                timeout=self._timeout,
                transport=self._transport,
                follow_redirects=True,
                headers={"User-Agent": USER_AGENT},
            ) as client:
                for repo_number, url in enumerate(urls):
                    plugins.extend(self._fetch_repo(client, url, repo_number))
        except Exception:
            logger.exception("Could not download plugin catalog")
            if len(urls) > 1:
                return CatalogSnapshot(CatalogState.FAIL_THIRD_REPO)
            return CatalogSnapshot(CatalogState.FAIL)

        logger.info("Catalog refreshed: %d plugins from %d repos", len(plugins), len(urls))
        return CatalogSnapshot(CatalogState.SUCCESS, tuple(plugins))

    def _fetch_repo(
        self, client: httpx.Client, url: str, repo_number: int
    ) -> list[PluginDefinition]:
        logger.info("Fetching repo: %s", url)

        response = client.get(url)
        response.raise_for_status()

        definitions = parse_definition_list(response.json())
        return [d.with_repo_number(repo_number) for d in definitions]
