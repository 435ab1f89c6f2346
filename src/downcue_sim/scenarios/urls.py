"""URL scenario - real HTTP downloads.

Downloads every ``--url`` given on the command line through one shared
httpx client. ``count``, latency and error settings do not apply.
"""

from __future__ import annotations

from typing import TYPE_CHECKING
from urllib.parse import unquote, urlparse

import httpx

from downcue import HttpSource, Request
from downcue_sim.scenarios import Scenario, ScenarioInfo, submit

if TYPE_CHECKING:
    import downcue
    from downcue_sim.display import SimulationState
    from downcue_sim.runner import SimConfig


def file_name_for(url: str, index: int) -> str:
    """Last path segment of ``url``, or a numbered fallback."""
    name = unquote(urlparse(url).path.rstrip("/").rsplit("/", 1)[-1])
    if not name or name in (".", ".."):
        return f"download_{index:04d}"
    return f"{index:04d}_{name}"


class UrlsScenario(Scenario):
    """Fetch real URLs."""

    def __init__(self) -> None:
        self._client: httpx.Client | None = None

    @property
    def info(self) -> ScenarioInfo:
        return ScenarioInfo(
            name="urls",
            description="Download the URLs given with --url",
        )

    def setup(self, engine: downcue.DownloadEngine, config: SimConfig, state: SimulationState) -> None:
        if not config.urls:
            raise ValueError("The urls scenario needs at least one --url")
        self._client = httpx.Client(timeout=config.http_timeout, follow_redirects=True)
        state.target_count = len(config.urls)

    def submit_workload(self, engine: downcue.DownloadEngine, config: SimConfig, state: SimulationState) -> None:
        for i, url in enumerate(config.urls):
            submit(engine, state, Request(
                target_file_name=file_name_for(url, i),
                content_factory=HttpSource(url, client=self._client),
                id=url,
                title=file_name_for(url, i),
            ))

    def teardown(self) -> None:
        if self._client is not None:
            self._client.close()
            self._client = None
