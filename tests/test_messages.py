import dataclasses

import pytest

from bsnadapt.messages import (
    AdaptationCommand,
    Event,
    Strategy,
    component_to_task,
    parse_pairs,
    task_to_component,
)


def test_component_to_task_example():
    assert component_to_task("/g3t1_1") == "G3_T1_1"


def test_task_to_component_example():
    assert task_to_component("G3_T1_1") == "/g3t1_1"


@pytest.mark.parametrize("component", ["/g3t1_1", "/g3t1_6", "/g4t1"])
def test_component_task_round_trip(component):
    assert task_to_component(component_to_task(component)) == component


def test_component_without_task_part():
    with pytest.raises(ValueError):
        component_to_task("/g3")


def test_task_without_parts():
    with pytest.raises(ValueError):
        task_to_component("G3")


def test_parse_pairs():
    result = parse_pairs("/g3t1_1:success,fail;/g4t1:success")
    assert result == [("/g3t1_1", "success,fail"), ("/g4t1", "success")]


def test_parse_pairs_skips_empty_segments():
    assert parse_pairs("") == []
    assert parse_pairs("/g4t1:0.5;") == [("/g4t1", "0.5")]


def test_parse_pairs_rejects_missing_separator():
    with pytest.raises(ValueError):
        parse_pairs("/g3t1_1")


def test_messages_are_frozen():
    command = AdaptationCommand(source="/enactor", target="/g4t1", action="freq=2")
    with pytest.raises(dataclasses.FrozenInstanceError):
        command.action = "freq=3"
    assert command.action == "freq=2"
    assert command.target == "/g4t1"


def test_event_defaults_and_equality():
    event = Event(source="/g3t1_1", content="activate")
    assert event.freq == 0.0
    assert event == Event(source="/g3t1_1", content="activate", freq=0.0)
    assert Strategy("/engine", "/enactor", "x") == Strategy("/engine", "/enactor", "x")