"""Quality-of-service model and the shared MAPE-K engine logic."""

from __future__ import annotations

import itertools
import logging
import math
import operator
import re
import time
from abc import ABC, abstractmethod
from collections.abc import Callable, Iterable, Mapping

from .messages import Strategy, component_to_task, parse_pairs, task_to_component

__all__ = ["QosModel", "DataAccessError", "Engine", "encode_strategy"]

logger = logging.getLogger(__name__)

_LEXEME = re.compile(
    r"(?P<number>(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?)"
    r"|(?P<name>[A-Za-z_][A-Za-z0-9_]*)"
    r"|(?P<op>[-+*/^()])"
)

_Node = Callable[[Mapping[str, float]], float]


class DataAccessError(Exception):
    """Raised when the knowledge repository cannot be reached."""


def _divide(left: float, right: float) -> float:
    if right == 0:
        if left == 0 or math.isnan(left):
            return math.nan
        return math.copysign(math.inf, left) * math.copysign(1.0, right)
    return left / right


def _power(base: float, exponent: float) -> float:
    try:
        return math.pow(base, exponent)
    except OverflowError:
        return math.inf
    except ValueError:
        return math.nan


_OPERATORS = {
    "+": operator.add,
    "-": operator.sub,
    "*": operator.mul,
    "/": _divide,
    "^": _power,
}


def _lex(text: str) -> list[tuple[str, str]]:
    lexemes = []
    pos = 0
    while pos < len(text):
        if text[pos].isspace():
            pos += 1
            continue
        match = _LEXEME.match(text, pos)
        if match is None:
            raise ValueError(f"unexpected character {text[pos]!r} at position {pos}")
        kind = match.lastgroup
        lexemes.append((kind, match.group(kind)))
        pos = match.end()
    return lexemes


def _binary(function, left: _Node, right: _Node) -> _Node:
    return lambda values: function(left(values), right(values))


def _lookup(name: str) -> _Node:
    def read(values: Mapping[str, float]) -> float:
        try:
            return float(values[name])
        except KeyError:
            raise KeyError(f"no value for term {name!r}") from None

    return read


class _Parser:
    def __init__(self, lexemes: list[tuple[str, str]]):
        self._lexemes = lexemes
        self._pos = 0

    def _peek(self) -> tuple[str | None, str | None]:
        if self._pos < len(self._lexemes):
            return self._lexemes[self._pos]
        return (None, None)

    def _take(self) -> tuple[str, str]:
        lexeme = self._peek()
        if lexeme[0] is None:
            raise ValueError("unexpected end of formula")
        self._pos += 1
        return lexeme

    def parse(self) -> _Node:
        node = self._expression()
        if self._pos != len(self._lexemes):
            raise ValueError(f"unexpected symbol {self._lexemes[self._pos][1]!r}")
        return node

    def _expression(self) -> _Node:
        node = self._term()
        while self._peek() in (("op", "+"), ("op", "-")):
            symbol = self._take()[1]
            node = _binary(_OPERATORS[symbol], node, self._term())
        return node

    def _term(self) -> _Node:
        node = self._unary()
        while self._peek() in (("op", "*"), ("op", "/")):
            symbol = self._take()[1]
            node = _binary(_OPERATORS[symbol], node, self._unary())
        return node

    def _unary(self) -> _Node:
        if self._peek() == ("op", "-"):
            self._take()
            operand = self._unary()
            return lambda values: -operand(values)
        if self._peek() == ("op", "+"):
            self._take()
            return self._unary()
        return self._power()

    def _power(self) -> _Node:
        base = self._primary()
        if self._peek() == ("op", "^"):
            self._take()
            return _binary(_power, base, self._unary())
        return base

    def _primary(self) -> _Node:
        kind, text = self._take()
        if kind == "number":
            value = float(text)
            return lambda values: value
        if kind == "name":
            return _lookup(text)
        if text == "(":
            node = self._expression()
            if self._take() != ("op", ")"):
                raise ValueError("missing closing parenthesis")
            return node
        raise ValueError(f"unexpected symbol {text!r}")


class QosModel:
    """An algebraic target system model over named terms."""

    def __init__(self, formula: str):
        lexemes = _lex(formula)
        self.formula = formula
        self.terms = list(dict.fromkeys(text for kind, text in lexemes if kind == "name"))
        self._root = _Parser(lexemes).parse()

    def evaluate(self, values: Mapping[str, float]) -> float:
        """Evaluate the formula with the given term values."""
        return self._root(values)

    def __repr__(self) -> str:
        return f"QosModel({self.formula!r})"


def encode_strategy(strategy: Mapping[str, float], prefix: str) -> str:
    """Encode the ``prefix`` terms as ``/g3t1_1:0.890000;/g4t1:0.200000``."""
    entries = []
    for key in sorted(strategy):
        if prefix not in key:
            continue
        parts = key.lower().split("_")
        if len(parts) < 3:
            raise ValueError(f"term {key!r} does not name a task")
        component = task_to_component("_".join(parts[1:]))
        entries.append(f"{component}:{strategy[key]:.6f}")
    return ";".join(entries)


class Engine(ABC):
    """Common state and the monitor step of the adaptation engines.

    ``data_access`` is called as ``data_access(name, query)`` and returns the
    repository's answer, raising :class:`DataAccessError` when unreachable.
    """

    prefix: str = ""
    initial_term_value: float = 0.0
    deactivated_value: float = 0.0
    reset_to_one: tuple[str, ...] = ()
    node_name = "/engine"

    def __init__(
        self,
        data_access: Callable[[str, str], str],
        model_factory: Callable[[str], QosModel] = QosModel,
        qos_attribute: str = "",
        info_quant: float = 0.0,
        monitor_freq: float = 1.0,
        actuation_freq: float = 1.0,
    ):
        self.data_access = data_access
        self.model_factory = model_factory
        self.qos_attribute = qos_attribute
        self.info_quant = info_quant
        self.monitor_freq = monitor_freq
        self.actuation_freq = actuation_freq
        self.target_system_model: QosModel | None = None
        self.strategy: dict[str, float] = {}
        self.priority: dict[str, int] = {}
        self.deactivated_components: dict[str, bool] = {}
        self.cycles = 0

    def initialize_strategy(self, terms: Iterable[str]) -> dict[str, float]:
        """Give every term its initial value."""
        return {term: self.initial_term_value for term in terms}

    def initialize_priority(self, terms: Iterable[str]) -> dict[str, int]:
        """Give every adaptable term the middle priority of 50."""
        return {term: 50 for term in terms if self.prefix in term}

    def fetch_formula(self, name: str) -> str:
        """Ask the repository for the formula of ``name``; empty on failure."""
        try:
            formula = self.data_access(self.node_name, f"{name}_formula")
        except DataAccessError:
            logger.error("Tried to fetch formula string, but Data Access is not responding.")
            return ""
        if not formula:
            logger.error("Empty formula string received.")
            return ""
        return formula

    def setup_formula(self, formula: str) -> None:
        """Build the model and reset strategy and priorities from its terms."""
        self.target_system_model = self.model_factory(formula)
        terms = list(self.target_system_model.terms)
        self.strategy = self.initialize_strategy(terms)
        self.calculate_qos(self.strategy)
        self.priority = self.initialize_priority(terms)

    def calculate_qos(self, strategy: Mapping[str, float]) -> float:
        """Evaluate the target system model for the given strategy."""
        if self.target_system_model is None:
            raise RuntimeError("no target system model has been set up")
        return self.target_system_model.evaluate(strategy)

    def receive_exception(self, content: str) -> None:
        """Shift a component's priority, e.g. ``/g3t1_1=1``, within 0..100."""
        fields = content.split("=")
        key = self.prefix + component_to_task(fields[0])
        if key not in self.priority:
            logger.error("Could not find component %s in list of priorities.", key)
            return
        value = self.priority[key] + int(fields[1])
        if value > 99:
            value = 100
        if value < 1:
            value = 0
        self.priority[key] = value

    def send_adaptation_parameter(self) -> str:
        """Answer the enactor's request for the adapted attribute."""
        return self.qos_attribute

    def monitor(self) -> None:
        """Refresh the strategy from the repository, then analyze."""
        logger.info("[monitoring]")
        self.cycles += 1

        for key in self.strategy:
            if "CTX_" in key:
                self.strategy[key] = 0.0
            if self.prefix in key or any(extra in key for extra in self.reset_to_one):
                self.strategy[key] = 1.0

        query = f"all:{self.qos_attribute}:{self.info_quant:.6f}"
        try:
            answer = self.data_access(self.node_name, query)
        except DataAccessError:
            logger.error("Failed to connect to data access node.")
            return
        if not answer:
            logger.error("Received empty answer when asked for %s.", self.qos_attribute)
        for component, values in parse_pairs(answer or ""):
            key = self.prefix + component_to_task(component)
            self.strategy[key] = float(values.split(",")[-1])
            logger.info("%s = %s", key, self.strategy[key])

        try:
            answer = self.data_access(self.node_name, "all:event:1")
        except DataAccessError:
            logger.error("Failed to connect to data access node.")
            return
        if not answer:
            logger.error("Received empty answer when asked for event.")
        for component, values in parse_pairs(answer or ""):
            task = component_to_task(component)
            key = self.prefix + task
            for value in values.split(","):
                if task != "G4_T1":
                    self.strategy["CTX_" + task] = 1.0
                    if value == "deactivate":
                        self.strategy[key] = self.deactivated_value
                        self.deactivated_components[key] = True
                        logger.info("%s was deactivated", task)
                elif value == "activate":
                    self.strategy["CTX_" + task] = 1.0
                    self.deactivated_components[key] = False
                else:
                    self.strategy["CTX_" + task] = 0.0
                    self.deactivated_components[key] = True

        self.analyze()

    @abstractmethod
    def analyze(self) -> None:
        """Decide whether the current strategy needs planning."""

    @abstractmethod
    def plan(self) -> None:
        """Search for a strategy that meets the setpoint."""

    def execute(self) -> Strategy:
        """Build the strategy message for the enactor."""
        content = encode_strategy(self.strategy, self.prefix)
        logger.info("[execute] %s", content)
        return Strategy(source=self.node_name, target="/enactor", content=content)

    def run(self, iterations: int | None = None) -> int:
        """Fetch the formula, then run the monitor loop; forever if no count."""
        formula = self.fetch_formula(self.qos_attribute)
        while not formula:
            time.sleep(1.0)
            formula = self.fetch_formula(self.qos_attribute)
        self.setup_formula(formula)

        refresh_every = self.monitor_freq * 10
        period = 1.0 / self.monitor_freq
        update = 0
        steps = itertools.count() if iterations is None else range(iterations)
        for step in steps:
            if step:
                time.sleep(period)
            update += 1
            if update >= refresh_every:
                update = 0
                formula = self.fetch_formula(self.qos_attribute)
                if not formula:
                    continue
                self.setup_formula(formula)
            self.monitor()
        return 0