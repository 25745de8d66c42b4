"""Adaptation engine that keeps the energy cost of the system near a setpoint."""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from functools import partial

from .engine import Engine, QosModel
from .messages import EnergyStatus, Strategy

__all__ = ["CostEngine"]

logger = logging.getLogger(__name__)

_HUB = "W_G4_T1"


class CostEngine(Engine):
    """Plans per-component cost references for the enactor.

    ``publish`` receives every :class:`Strategy` the engine decides to enact;
    ``publish_energy`` receives the :class:`EnergyStatus` built on each analysis.
    """

    prefix = "W_"
    initial_term_value = 0.0
    deactivated_value = 0.0
    reset_to_one = ()
    tolerance = 0.02

    def __init__(
        self,
        data_access: Callable[[str, str], str],
        model_factory: Callable[[str], QosModel] = QosModel,
        publish: Callable[[Strategy], None] | None = None,
        publish_energy: Callable[[EnergyStatus], None] | None = None,
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
            qos_attribute="cost",
            info_quant=info_quant,
            monitor_freq=monitor_freq,
            actuation_freq=actuation_freq,
        )
        self.publish = publish if publish is not None else (lambda message: None)
        self.publish_energy = (
            publish_energy if publish_energy is not None else (lambda message: None)
        )
        self.setpoint = setpoint
        self.offset = offset
        self.gain = gain

    def initialize_strategy(self, terms: Iterable[str]) -> dict[str, float]:
        """Every term starts at zero cost."""
        return {term: 0.0 for term in terms}

    def initialize_priority(self, terms: Iterable[str]) -> dict[str, int]:
        """Every cost term starts with priority 50."""
        return {term: 50 for term in terms if "W_" in term}

    def monitor(self) -> None:
        """Refresh costs and context from the repository, then analyze."""
        super().monitor()

    def _energy_status(self, c_curr: float) -> EnergyStatus:
        content = f"global:{c_curr:.6f};"
        for key in sorted(self.strategy):
            if "W_" not in key:
                continue
            name = key[2:].lower()
            component = "/" + name[:2] + name[3:]
            content += f"{component}:{self.strategy[key]:.6f};"
        return EnergyStatus(source=self.node_name, content=content)

    def analyze(self) -> None:
        """Report energy use and plan when the cost leaves the stability margin."""
        logger.info("[analyze]")
        c_curr = self.calculate_qos(self.strategy)
        logger.info("current system cost: %s", c_curr)
        self.publish_energy(self._energy_status(c_curr))

        error = self.setpoint - c_curr
        margin = self.setpoint * self.tolerance
        if error > margin or error < -margin:
            if self.cycles >= self.monitor_freq / self.actuation_freq:
                self.cycles = 0
                self.plan()

    def _per_sensor(self, sensor_num: int) -> float:
        return self.calculate_qos(self.strategy) / sensor_num

    def _bump(self, key: str, error: float) -> None:
        if key != _HUB:
            self.strategy[key] += self.gain * error
        else:
            self.strategy[key] = 0.0

    def _zero(self, key: str) -> None:
        self.strategy[key] = 0.0

    def _descend(
        self,
        error: float,
        sensor_num: int,
        c_new: float,
        step: Callable[[], None],
        watched: str,
    ) -> float:
        """Repeat ``step`` while the cost moves toward the setpoint; keep the last good state."""
        if error == 0:
            return c_new
        while True:
            previous = dict(self.strategy)
            c_prev = c_new
            step()
            c_new = self._per_sensor(sensor_num)
            positive = self.strategy[watched] > 0
            if error > 0:
                keep_going = c_new < self.setpoint and c_prev < c_new and positive
            else:
                keep_going = c_new > self.setpoint and c_prev > c_new and positive
            if not keep_going:
                break
        self.strategy = previous
        return self._per_sensor(sensor_num)

    def _search(self, ordered: list[str], error: float, sensor_num: int) -> list[dict[str, float]]:
        solutions = []
        for first in ordered:
            for key in ordered:
                if key != _HUB:
                    if error > 0:
                        self.strategy[key] *= 1 - self.offset
                    elif error < 0:
                        self.strategy[key] *= 1 + self.offset
                else:
                    self.strategy[key] = 0.0
            c_new = self._per_sensor(sensor_num)
            logger.info("offset=%s", c_new)

            c_new = self._descend(error, sensor_num, c_new, partial(self._bump, first, error), first)

            for other in ordered:
                if other == first:
                    continue
                if error > 0:
                    step = (
                        partial(self._bump, other, error)
                        if other != _HUB
                        else partial(self._zero, first)
                    )
                else:
                    step = partial(self._bump, first, error)
                c_new = self._descend(error, sensor_num, c_new, step, other)

            negative_cost = any(
                value < 0 for key, value in self.strategy.items() if "W_" in key
            )
            if not negative_cost:
                solutions.append(dict(self.strategy))
        return solutions

    def plan(self) -> Strategy | None:
        """Search for a strategy within tolerance of the setpoint and enact it."""
        logger.info("[plan] setpoint=%s", self.setpoint)
        c_curr = self.calculate_qos(self.strategy)
        error = self.setpoint - c_curr
        logger.info("c_curr=%s error=%s", c_curr, error)

        candidates = []
        for key in sorted(self.strategy):
            if "W_" not in key:
                continue
            task = key[2:]
            if self.strategy.setdefault("CTX_" + task, 0.0) != 0:
                if not self.deactivated_components.get(key, False):
                    candidates.append(key)
                    self.strategy[key] = c_curr
                else:
                    self.strategy[key] = 0.0

        # An empty candidate list makes the unsigned "count - 1" wrap to -1.
        sensor_num = -1 if not candidates else max(1, len(candidates) - 1)

        for key in self.strategy:
            if "W_" in key:
                self.strategy[key] /= sensor_num

        error /= sensor_num
        self.setpoint /= sensor_num
        try:
            ordered = [
                key
                for key, _ in sorted(self.priority.items(), key=lambda item: (item[1], item[0]))
                if not self.deactivated_components.get("W_" + key, False) and key in candidates
            ]
            logger.info("ordered c_vec: %s", ordered)
            solutions = self._search(ordered, error, sensor_num)
        finally:
            self.setpoint *= sensor_num

        low = self.setpoint * (1 - self.tolerance)
        high = self.setpoint * (1 + self.tolerance)
        for solution in solutions:
            self.strategy = solution
            c_new = self.calculate_qos(self.strategy)
            logger.info(
                "strategy: %s = %s",
                {key: value for key, value in solution.items() if "W_" in key},
                c_new,
            )
            if low < c_new < high:
                return self.execute()

        logger.info("Did not converge :(")
        return None

    def execute(self) -> Strategy:
        """Publish the cost references of the current strategy."""
        message = super().execute()
        self.publish(message)
        return message