"""Proportional controller that turns reference errors into commands."""

from __future__ import annotations

import logging
import math
from collections import defaultdict
from collections.abc import Callable

from .enactor import Enactor
from .messages import AdaptationCommand, Event, ExceptionMessage

__all__ = ["Controller"]

logger = logging.getLogger(__name__)

_HUB = "/g4t1"
_DESIRED_VOLTAGE = 1.0
_KP_VOLT = 200
_RELIABILITY_MAX_FREQ = 40.0
_COST_MAX_FREQ = 25.0
_MIN_FREQ = 0.1
_ESCALATION = 4


class Controller(Enactor):
    """Proportional enactor for sensors and the central hub.

    ``adaptation_parameter`` is the controller's own actuation setting: with
    ``"replicate_collect"`` sensors are adapted by replicating collections,
    otherwise by frequency; ``"reliability"`` also selects which tables an
    activation event initialises. The engine's attribute, obtained through
    :meth:`receive_adaptation_parameter`, is kept separately.

    Without a publisher, commands and exceptions are kept in
    ``adapt_sent`` and ``exceptions_sent``.
    """

    def __init__(
        self,
        data_access,
        engine_request,
        publish_adapt: Callable[[AdaptationCommand], None] | None = None,
        publish_exception: Callable[[ExceptionMessage], None] | None = None,
        kp: float = 0.0,
        adaptation_parameter: str = "",
        frequency: float = 1.0,
        name: str = "/enactor",
    ):
        super().__init__(data_access, engine_request, name)
        self.adapt_sent: list[AdaptationCommand] = []
        self.exceptions_sent: list[ExceptionMessage] = []
        self.publish_adapt = (
            publish_adapt if publish_adapt is not None else self.adapt_sent.append
        )
        self.publish_exception = (
            publish_exception
            if publish_exception is not None
            else self.exceptions_sent.append
        )
        self.default_kp = kp
        self.kp: defaultdict[str, float] = defaultdict(float)
        self.control_parameter = adaptation_parameter
        self.frequency = frequency

    def receive_event(self, event: Event) -> None:
        """Set up or drop a component's controller state."""
        source = event.source
        reliability = self.control_parameter == "reliability"
        if event.content == "activate":
            self.invocations[source] = []
            if reliability:
                self.r_curr[source] = 1.0
                self.r_ref[source] = 1.0
            else:
                self.c_curr[source] = 0.0
                self.c_ref[source] = 0.0
            self.kp[source] = self.default_kp
            self.replicate_task[source] = 1
            self.freq[source] = event.freq
            self.exception_buffer[source] = 0
        elif event.content == "deactivate":
            tables = (
                (self.r_curr, self.r_ref) if reliability else (self.c_curr, self.c_ref)
            )
            for table in (
                self.invocations,
                *tables,
                self.kp,
                self.replicate_task,
                self.freq,
                self.exception_buffer,
            ):
                table.pop(source, None)

    def _command(self, component: str, action: str) -> None:
        self.publish_adapt(
            AdaptationCommand(source=self.name, target=component, action=action)
        )

    def _outside_margin(self, error: float, reference: float) -> bool:
        margin = self.stability_margin * reference
        return error > margin or error < -margin

    def _count(self, component: str, outside: bool) -> None:
        buffer = self.exception_buffer[component]
        if outside:
            buffer = 0 if buffer < 0 else buffer + 1
        else:
            buffer = 0 if buffer > 0 else buffer - 1
        self.exception_buffer[component] = buffer

    def _escalate(self, component: str) -> None:
        buffer = self.exception_buffer[component]
        if buffer > _ESCALATION:
            change = "1"
        elif buffer < -_ESCALATION:
            change = "-1"
        else:
            return
        self.publish_exception(
            ExceptionMessage(source=self.name, target="/engine", content=f"{component}={change}")
        )
        self.exception_buffer[component] = 0

    def _proposed_freq(self, component: str, error: float) -> float:
        return self.freq[component] + (self.kp[component] / 100) * error

    def _adapt_hub(self, component: str, error: float) -> None:
        new_freq = self._proposed_freq(component, error)
        if new_freq > 0:
            self.freq[component] = new_freq
            self._command(component, f"freq={new_freq:.6f}")

    def _replicate(self, component: str, error: float) -> None:
        step = self.kp[component] * error
        change = math.ceil(step) if error > 0 else math.floor(step)
        replicas = max(1, self.replicate_task[component] + change)
        self.replicate_task[component] = replicas
        self._command(component, f"replicate_collect={replicas}")

    def _adapt_frequency(self, component: str, new_freq: float, upper: float) -> None:
        if _MIN_FREQ <= new_freq <= upper:
            self.freq[component] = new_freq
            self._command(component, f"freq={new_freq:.6f}")

    def apply_reli_strategy(self, component: str) -> None:
        """Correct a component whose reliability is off its reference."""
        error = self.r_ref[component] - self.r_curr[component]
        outside = self._outside_margin(error, self.r_ref[component])
        self._count(component, outside)
        if outside:
            if component == _HUB:
                self._adapt_hub(component, error)
            elif self.control_parameter == "replicate_collect":
                self._replicate(component, error)
            else:
                new_freq = self._proposed_freq(component, error)
                self._adapt_frequency(component, new_freq, _RELIABILITY_MAX_FREQ)
        self._escalate(component)
        self.invocations[component] = []

    def apply_cost_strategy(self, component: str) -> None:
        """Correct a component whose cost is off its reference, voltage included."""
        error = self.c_ref[component] - self.c_curr[component]
        voltage = self.c_curr[component + "_volt"]
        voltage_error = _DESIRED_VOLTAGE - voltage
        outside = self._outside_margin(error, self.c_ref[component])
        self._count(component, outside)
        if outside:
            if component == _HUB:
                self._adapt_hub(component, error)
            elif self.control_parameter == "replicate_collect":
                self._replicate(component, error)
            else:
                new_freq = self._proposed_freq(component, error)
                new_volt = voltage + (_KP_VOLT // 100) * voltage_error
                logger.info("NEW FREQUENCY [%f]", new_freq)
                logger.info("NEW VOLT [%f]", new_volt)
                if 1.0 <= new_volt <= 6.0:
                    self._command(component, f"volt={new_volt:.6f}")
                self._adapt_frequency(component, new_freq, _COST_MAX_FREQ)
        self._escalate(component)
        self.invocations[component] = []