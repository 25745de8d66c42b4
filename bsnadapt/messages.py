"""Messages exchanged between the adaptation components and name helpers."""

from __future__ import annotations

from dataclasses import dataclass

__all__ = [
    "Strategy",
    "EnergyStatus",
    "AdaptationCommand",
    "ExceptionMessage",
    "Event",
    "component_to_task",
    "task_to_component",
    "parse_pairs",
]


@dataclass(frozen=True)
class Strategy:
    """Reference values sent from an engine to the enactor."""

    source: str
    target: str
    content: str


@dataclass(frozen=True)
class EnergyStatus:
    """Energy consumption report published by the cost engine."""

    source: str
    content: str


@dataclass(frozen=True)
class AdaptationCommand:
    """A reconfiguration order for one target component."""

    source: str
    target: str
    action: str


@dataclass(frozen=True)
class ExceptionMessage:
    """A priority change request, with content such as ``/g3t1_1=1``."""

    source: str
    target: str
    content: str


@dataclass(frozen=True)
class Event:
    """A component life-cycle event (``activate`` or ``deactivate``)."""

    source: str
    content: str
    freq: float = 0.0
    target: str = ""


def component_to_task(component: str) -> str:
    """Turn a component name such as ``/g3t1_1`` into the task ``G3_T1_1``."""
    name = component.upper()[1:]
    index = name.find("T")
    if index < 0:
        raise ValueError(f"component name {component!r} has no task part")
    return f"{name[:index]}_{name[index:]}"


def task_to_component(task: str) -> str:
    """Turn a task such as ``G3_T1_1`` into the component name ``/g3t1_1``."""
    parts = task.lower().split("_")
    if len(parts) < 2:
        raise ValueError(f"task name {task!r} has no goal and task parts")
    name = "/" + parts[0] + parts[1]
    if len(parts) > 2:
        name += "_" + parts[2]
    return name


def parse_pairs(content: str) -> list[tuple[str, str]]:
    """Split ``name:value;name:value`` text into ``(name, value)`` pairs.

    Empty segments are skipped; a segment without ``:`` is an error.
    """
    pairs = []
    for segment in content.split(";"):
        if not segment:
            continue
        fields = segment.split(":")
        if len(fields) < 2:
            raise ValueError(f"malformed pair {segment!r}")
        pairs.append((fields[0], fields[1]))
    return pairs