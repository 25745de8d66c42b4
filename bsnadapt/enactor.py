"""Enactor: turns engine references and repository status into actions."""

from __future__ import annotations

import itertools
import logging
import time
from abc import ABC, abstractmethod
from collections import defaultdict
from collections.abc import Callable

from .engine import DataAccessError
from .messages import Event, parse_pairs

__all__ = ["Enactor"]

logger = logging.getLogger(__name__)

_PARAMETERS = ("reliability", "cost")


class Enactor(ABC):
    """Shared state and message handling of the enactors.

    ``data_access(name, query)`` asks the knowledge repository and
    ``engine_request()`` asks the engine for its adapted attribute; both raise
    :class:`DataAccessError` when the other side cannot be reached.

    The per-component tables behave like maps that create an entry with a
    zero value on first read.
    """

    def __init__(
        self,
        data_access: Callable[[str, str], str],
        engine_request: Callable[[], str],
        name: str = "/enactor",
    ):
        self.data_access = data_access
        self.engine_request = engine_request
        self.name = name
        self.frequency = 1.0
        self.cycles = 0
        self.stability_margin = 0.02
        self.adaptation_parameter = ""
        self.invocations: defaultdict[str, list[int]] = defaultdict(list)
        self.exception_buffer: defaultdict[str, int] = defaultdict(int)
        self.freq: defaultdict[str, float] = defaultdict(float)
        self.r_curr: defaultdict[str, float] = defaultdict(float)
        self.c_curr: defaultdict[str, float] = defaultdict(float)
        self.r_ref: defaultdict[str, float] = defaultdict(float)
        self.c_ref: defaultdict[str, float] = defaultdict(float)
        self.replicate_task: defaultdict[str, int] = defaultdict(int)

    def receive_adaptation_parameter(self) -> str:
        """Ask the engine which attribute it adapts and remember the answer."""
        try:
            parameter = self.engine_request()
        except DataAccessError:
            logger.error("Failed to connect to Strategy Manager node.")
            return self.adaptation_parameter
        self.adaptation_parameter = parameter
        if parameter not in _PARAMETERS:
            logger.error("Invalid adaptation parameter received.")
        return parameter

    def receive_status(self) -> None:
        """Read current values for all components and apply the strategy to each."""
        reliability = self.adaptation_parameter == "reliability"
        query = "all:reliability:" if reliability else "all:cost:"
        try:
            answer = self.data_access(self.name, query)
        except DataAccessError:
            logger.error("Failed to connect to data access node.")
            return
        if not answer:
            logger.error("Received empty answer when asked for status.")

        for component, content in parse_pairs(answer or ""):
            fields = content.split("`")
            value = float(fields[0].split(",")[-1])
            if reliability:
                self.r_curr[component] = value
                self.apply_reli_strategy(component)
            else:
                if len(fields) < 2 or not fields[1]:
                    raise ValueError(f"no voltage reading for {component!r}")
                self.c_curr[component] = value
                self.c_curr[component + "_volt"] = float(fields[1].split(",")[-1])
                self.apply_cost_strategy(component)

    def receive_strategy(self, content: str) -> None:
        """Store reference values sent as ``/g3t1_1:0.89;/g4t1:0.2``."""
        references = self.r_ref if self.adaptation_parameter == "reliability" else self.c_ref
        for component, value in parse_pairs(content):
            references[component] = float(value)

    @abstractmethod
    def receive_event(self, event: Event) -> None:
        """React to a component being activated or deactivated."""

    @abstractmethod
    def apply_reli_strategy(self, component: str) -> None:
        """Drive a component's reliability toward its reference."""

    @abstractmethod
    def apply_cost_strategy(self, component: str) -> None:
        """Drive a component's cost toward its reference."""

    def run(self, iterations: int | None = None) -> int:
        """Ask the engine for its attribute, then poll the status; forever if no count."""
        self.receive_adaptation_parameter()
        self.cycles = 0
        period = 1.0 / self.frequency
        steps = itertools.count() if iterations is None else range(iterations)
        for step in steps:
            if step:
                time.sleep(period)
            if self.cycles <= 60 * self.frequency:
                self.cycles += 1
            self.receive_status()
        return 0