"""Built-in scenarios for downcue-sim.

Scenarios define workload patterns - what gets downloaded, from where, and
which listeners shape the run.
"""

from __future__ import annotations

import random
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import TYPE_CHECKING

from downcue import Request

if TYPE_CHECKING:
    import downcue
    from downcue_sim.display import SimulationState
    from downcue_sim.runner import SimConfig


@dataclass
class ScenarioInfo:
    """Metadata about a scenario."""
    name: str
    description: str


class Scenario(ABC):
    """Base class for simulation scenarios.

    A scenario defines:
    - Listeners (vetoes, cancellations) registered on the engine
    - Initial workload (what to submit)
    """

    @property
    @abstractmethod
    def info(self) -> ScenarioInfo:
        """Return scenario metadata."""
        ...

    def setup(self, engine: "downcue.DownloadEngine", config: "SimConfig", state: "SimulationState") -> None:
        """Register listeners on the engine. Default: nothing."""

    @abstractmethod
    def submit_workload(self, engine: "downcue.DownloadEngine", config: "SimConfig", state: "SimulationState") -> None:
        """Submit the initial workload.

        Args:
            engine: The engine to submit to
            config: Simulation configuration
            state: State object to update
        """
        ...

    def teardown(self) -> None:
        """Release resources held by the scenario. Default: nothing."""


def submit(engine: "downcue.DownloadEngine", state: "SimulationState", request: Request) -> "downcue.Job | None":
    """Submit one request and record the outcome on ``state``."""
    job = engine.submit(request)
    state.record_submission(request, job)
    return job


def pick_failure_offset(size: int, error_rate: float) -> int | None:
    """Random byte offset to fail at, or None (with probability 1 - error_rate)."""
    if size > 0 and random.random() < error_rate:
        return random.randrange(size)
    return None


# Import built-in scenarios
from downcue_sim.scenarios.single_queue import SingleQueueScenario
from downcue_sim.scenarios.priority import PriorityScenario
from downcue_sim.scenarios.flaky import FlakyScenario
from downcue_sim.scenarios.urls import UrlsScenario

# Registry of built-in scenarios
SCENARIOS: dict[str, type[Scenario]] = {
    "single_queue": SingleQueueScenario,
    "priority": PriorityScenario,
    "flaky": FlakyScenario,
    "urls": UrlsScenario,
}


def get_scenario(name: str) -> Scenario:
    """Get a scenario instance by name."""
    if name not in SCENARIOS:
        available = ", ".join(SCENARIOS.keys())
        raise ValueError(f"Unknown scenario: {name}. Available: {available}")
    return SCENARIOS[name]()


def list_scenarios() -> list[ScenarioInfo]:
    """List all available scenarios."""
    return [cls().info for cls in SCENARIOS.values()]
