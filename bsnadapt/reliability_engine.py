"""Adaptation engine that keeps system reliability near a setpoint."""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable

from .engine import Engine, QosModel
from .messages import Strategy

__all__ = ["ReliabilityEngine"]

logger = logging.getLogger(__name__)


class ReliabilityEngine(Engine):
    """Plans per-component reliability references for the enactor.

    ``publish`` receives every :class:`Strategy` the engine decides to enact.
    """

    prefix = "R_"
    initial_term_value = 1.0
    deactivated_value = 1.0
    reset_to_one = ("F_",)
    tolerance = 0.02

    def __init__(
        self,
        data_access: Callable[[str, str], str],
        model_factory: Callable[[str], QosModel] = QosModel,
        publish: Callable[[Strategy], None] | None = None,
        setpoint: float = 0.0,
        offset: float = 0.0,
        gain: float = 0.0,
        info_quant: float = 0.0,
        monitor_freq: float = 1.0,
        actuation_freq: float = 1.0,
    ):
        super().__init__(
            data_access,
            model_factory,
            qos_attribute="reliability",
            info_quant=info_quant,
            monitor_freq=monitor_freq,
            actuation_freq=actuation_freq,
        )
        self.publish = publish if publish is not None else (lambda message: None)
        self.setpoint = setpoint
        self.offset = offset
        self.gain = gain

    def initialize_strategy(self, terms: Iterable[str]) -> dict[str, float]:
        """Every term starts fully reliable."""
        return {term: 1.0 for term in terms}

    def initialize_priority(self, terms: Iterable[str]) -> dict[str, int]:
        """Every reliability term starts with priority 50."""
        return {term: 50 for term in terms if "R_" in term}

    def monitor(self) -> None:
        """Refresh reliabilities and context from the repository, then analyze."""
        super().monitor()

    def analyze(self) -> None:
        """Plan when the reliability leaves the stability margin."""
        logger.info("[analyze]")
        r_curr = self.calculate_qos(self.strategy)
        error = self.setpoint - r_curr
        margin = self.setpoint * self.tolerance
        if error > margin or error < -margin:
            if self.cycles >= self.monitor_freq / self.actuation_freq:
                self.cycles = 0
                self.plan()

    def _climb(self, key: str, error: float, r_new: float) -> tuple[dict[str, float], float]:
        """Step ``key`` by gain*error while the model moves toward the setpoint."""
        while True:
            previous = dict(self.strategy)
            r_prev = r_new
            self.strategy[key] += self.gain * error
            r_new = self.calculate_qos(self.strategy)
            value = self.strategy[key]
            in_bounds = 0 < value < 1
            if error > 0:
                keep_going = r_new < self.setpoint and r_prev < r_new and in_bounds
            else:
                keep_going = r_new > self.setpoint and r_prev > r_new and in_bounds
            if not keep_going:
                return previous, r_new

    def plan(self) -> Strategy | None:
        """Search for a strategy within tolerance of the setpoint and enact it."""
        logger.info("[reli plan] setpoint=%s", self.setpoint)
        r_curr = self.calculate_qos(self.strategy)
        error = self.setpoint - r_curr
        logger.info("r_curr=%s error=%s", r_curr, error)

        candidates = []
        for key in sorted(self.strategy):
            if "R_" not in key:
                continue
            task = key[2:]
            context = self.strategy.setdefault("CTX_" + task, 0.0)
            failure = self.strategy.setdefault("F_" + task, 0.0)
            if context != 0 and failure != 0:
                if not self.deactivated_components.get(key, False):
                    candidates.append(key)
                    self.strategy[key] = r_curr
                else:
                    self.strategy[key] = 1.0

        ordered = [
            key
            for key, _ in sorted(self.priority.items(), key=lambda item: (item[1], item[0]))
            if not self.deactivated_components.get(key, False) and key in candidates
        ]
        logger.info("ordered r_vec: %s", ordered)

        solutions = []
        for first in ordered:
            for key in ordered:
                if error > 0:
                    self.strategy[key] = r_curr * (1 - self.offset)
                elif error < 0:
                    self.strategy[key] = min(1.0, r_curr * (1 + self.offset))
            r_new = self.calculate_qos(self.strategy)
            logger.info("offset=%s", r_new)

            for key in [first] + [other for other in ordered if other != first]:
                if error != 0:
                    previous, r_new = self._climb(key, error, r_new)
                    self.strategy = previous
                r_new = self.calculate_qos(self.strategy)
            solutions.append(dict(self.strategy))

        low = self.setpoint * (1 - self.tolerance)
        high = self.setpoint * (1 + self.tolerance)
        for solution in solutions:
            self.strategy = solution
            r_new = self.calculate_qos(self.strategy)
            logger.info(
                "strategy: %s = %s",
                {key: value for key, value in solution.items() if "R_" in key},
                r_new,
            )
            if low < r_new < high:
                return self.execute()

        logger.info("Did not converge :(")
        return None

    def execute(self) -> Strategy:
        """Publish the reliability references of the current strategy."""
        message = super().execute()
        self.publish(message)
        return message