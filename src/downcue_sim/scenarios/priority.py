"""Priority scenario - mixed priorities competing for few slots.

Every download gets one of a handful of priority levels. With fewer slots
than downloads, high-priority items overtake earlier low-priority ones in
the waiting queue; equal priorities stay first come first served.
"""

from __future__ import annotations

import random
from typing import TYPE_CHECKING

from downcue import Request
from downcue_sim.scenarios import Scenario, ScenarioInfo, pick_failure_offset, submit
from downcue_sim.sources import SimulatedSource

if TYPE_CHECKING:
    import downcue
    from downcue_sim.display import SimulationState
    from downcue_sim.runner import SimConfig

PRIORITY_LEVELS = (0, 1, 5, 10)


class PriorityScenario(Scenario):
    """Random priorities; watch the queue reorder."""

    @property
    def info(self) -> ScenarioInfo:
        return ScenarioInfo(
            name="priority",
            description="Mixed priorities, high priority overtakes the queue",
        )

    def submit_workload(self, engine: downcue.DownloadEngine, config: SimConfig, state: SimulationState) -> None:
        size = config.size_kb * 1024
        for i in range(config.count):
            priority = random.choice(PRIORITY_LEVELS)
            source = SimulatedSource(
                size,
                latency=config.latency_ms / 1000.0,
                jitter=config.latency_jitter,
                fail_at=pick_failure_offset(size, config.error_rate),
            )
            submit(engine, state, Request(
                target_file_name=f"p{priority:02d}/item_{i:04d}.bin",
                content_factory=source,
                id=f"item_{i:04d}",
                title=f"p{priority} item_{i:04d}",
                priority=priority,
            ))
