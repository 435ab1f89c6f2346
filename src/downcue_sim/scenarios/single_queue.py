"""Single queue scenario - the default workload pattern.

Uniform downloads of the same size through one engine. No priorities,
no vetoes.
"""

from __future__ import annotations

import time
from typing import TYPE_CHECKING

from downcue import Request
from downcue_sim.scenarios import Scenario, ScenarioInfo, pick_failure_offset, submit
from downcue_sim.sources import SimulatedSource

if TYPE_CHECKING:
    import downcue
    from downcue_sim.display import SimulationState
    from downcue_sim.runner import SimConfig


class SingleQueueScenario(Scenario):
    """Equal downloads, first come first served.

    The simplest scenario - a throughput test of the slot limit. Failures
    follow ``config.error_rate``.
    """

    @property
    def info(self) -> ScenarioInfo:
        return ScenarioInfo(
            name="single_queue",
            description="Equal-sized downloads, FIFO (default)",
        )

    def submit_workload(self, engine: downcue.DownloadEngine, config: SimConfig, state: SimulationState) -> None:
        """Submit independent downloads."""
        size = config.size_kb * 1024
        for i in range(config.count):
            source = SimulatedSource(
                size,
                latency=config.latency_ms / 1000.0,
                jitter=config.latency_jitter,
                fail_at=pick_failure_offset(size, config.error_rate),
            )
            submit(engine, state, Request(
                target_file_name=f"item_{i:04d}.bin",
                content_factory=source,
                id=f"item_{i:04d}",
            ))

            # Rate-limited submission
            if config.submit_rate:
                time.sleep(1.0 / config.submit_rate)
