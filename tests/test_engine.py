import math

import pytest

from bsnadapt.engine import DataAccessError, Engine, QosModel, encode_strategy
from bsnadapt.messages import Strategy

FORMULA = "CTX_G3_T1_1*R_G3_T1_1*F_G3_T1_1 + CTX_G4_T1*R_G4_T1"


class _Repository:
    def __init__(self, answers, fail=False):
        self.answers = answers
        self.fail = fail
        self.queries = []

    def __call__(self, name, query):
        self.queries.append((name, query))
        if self.fail:
            raise DataAccessError("unreachable")
        return self.answers.get(query.rsplit(":", 1)[0] if query.startswith("all:r") else query, "")


class _RecordingEngine(Engine):
    prefix = "R_"
    initial_term_value = 1.0
    deactivated_value = 1.0
    reset_to_one = ("F_",)

    def __init__(self, repository, **kwargs):
        super().__init__(repository, QosModel, "reliability", **kwargs)
        self.analyzed = []
        self.planned = 0

    def analyze(self):
        self.analyzed.append(dict(self.strategy))

    def plan(self):
        self.planned += 1


def _engine(answers=None, fail=False):
    answers = answers or {}
    answers.setdefault("reliability_formula", FORMULA)
    repository = _Repository(answers, fail)
    return _RecordingEngine(repository), repository


def test_qos_model_terms_in_order():
    model = QosModel(FORMULA)
    assert model.terms == ["CTX_G3_T1_1", "R_G3_T1_1", "F_G3_T1_1", "CTX_G4_T1", "R_G4_T1"]


def test_qos_model_precedence_and_power():
    assert QosModel("1+2*3").evaluate({}) == 1 + 2 * 3
    assert QosModel("(1+2)*3").evaluate({}) == (1 + 2) * 3
    assert QosModel("-2^2").evaluate({}) == -(2**2)
    assert QosModel("a/b").evaluate({"a": 3.0, "b": 4.0}) == 3.0 / 4.0


def test_qos_model_division_by_zero():
    assert QosModel("1/x").evaluate({"x": 0}) == math.inf
    assert math.isnan(QosModel("x/x").evaluate({"x": 0}))


def test_qos_model_missing_term():
    with pytest.raises(KeyError):
        QosModel("a+b").evaluate({"a": 1})


@pytest.mark.parametrize("formula", ["", "a+", "(a", "a $ b", "a b"])
def test_qos_model_syntax_errors(formula):
    with pytest.raises(ValueError):
        QosModel(formula)


def test_encode_strategy_example():
    strategy = {"R_G3_T1_1": 0.89, "R_G4_T1": 0.2, "CTX_G3_T1_1": 1.0}
    assert encode_strategy(strategy, "R_") == "/g3t1_1:0.890000;/g4t1:0.200000"


def test_encode_strategy_without_terms():
    assert encode_strategy({"CTX_G4_T1": 1.0}, "R_") == ""


def test_setup_formula_initializes_state():
    engine, _ = _engine()
    engine.setup_formula(FORMULA)
    assert set(engine.strategy) == set(QosModel(FORMULA).terms)
    assert all(value == 1.0 for value in engine.strategy.values())
    assert engine.priority == {"R_G3_T1_1": 50, "R_G4_T1": 50}


def test_calculate_qos_requires_model():
    engine, _ = _engine()
    with pytest.raises(RuntimeError):
        Engine.calculate_qos(engine, {})


def test_receive_exception_clamps_priority():
    engine, _ = _engine()
    Engine.setup_formula(engine, FORMULA)
    Engine.receive_exception(engine, "/g3t1_1=60")
    Engine.receive_exception(engine, "/g4t1=-60")
    assert engine.priority["R_G3_T1_1"] == 100
    assert engine.priority["R_G4_T1"] == 0


def test_receive_exception_unknown_component():
    engine, _ = _engine()
    Engine.setup_formula(engine, FORMULA)
    before = dict(engine.priority)
    Engine.receive_exception(engine, "/g3t1_5=1")
    assert engine.priority == before


def test_send_adaptation_parameter():
    engine, _ = _engine()
    assert Engine.send_adaptation_parameter(engine) == "reliability"


def test_fetch_formula_failure_gives_empty():
    engine, _ = _engine(fail=True)
    assert Engine.fetch_formula(engine, "reliability") == ""


def test_monitor_updates_strategy_and_context():
    engine, repository = _engine(
        {
            "all:reliability": "/g3t1_1:0.9,0.8;/g4t1:0.7",
            "all:event:1": "/g3t1_1:activate;/g4t1:deactivate",
        }
    )
    Engine.setup_formula(engine, FORMULA)
    Engine.monitor(engine)
    assert engine.cycles == 1
    assert len(engine.analyzed) == 1
    seen = engine.analyzed[0]
    assert seen["R_G3_T1_1"] == 0.8
    assert seen["R_G4_T1"] == 0.7
    assert seen["CTX_G3_T1_1"] == 1.0
    assert seen["CTX_G4_T1"] == 0.0
    assert seen["F_G3_T1_1"] == 1.0
    assert engine.deactivated_components["R_G4_T1"] is True
    assert ("/engine", "all:event:1") in repository.queries


def test_monitor_deactivated_sensor_takes_deactivated_value():
    engine, _ = _engine(
        {"all:reliability": "/g3t1_1:0.4", "all:event:1": "/g3t1_1:deactivate"}
    )
    Engine.setup_formula(engine, FORMULA)
    Engine.monitor(engine)
    assert engine.strategy["R_G3_T1_1"] == 1.0
    assert engine.deactivated_components["R_G3_T1_1"] is True


def test_monitor_stops_when_repository_unreachable():
    engine, _ = _engine()
    Engine.setup_formula(engine, FORMULA)
    engine.data_access = _Repository({}, fail=True)
    Engine.monitor(engine)
    assert engine.cycles == 1
    assert engine.analyzed == []


def test_execute_builds_strategy_message():
    engine, _ = _engine()
    engine.setup_formula(FORMULA)
    message = engine.execute()
    assert isinstance(message, Strategy)
    assert message.target == "/enactor"
    assert message.content == encode_strategy(engine.strategy, "R_")


def test_run_fetches_formula_and_monitors():
    engine, repository = _engine(
        {"all:reliability": "/g4t1:0.5", "all:event:1": "/g4t1:activate"}
    )
    assert Engine.run(engine, iterations=1) == 0
    assert repository.queries[0] == ("/engine", "reliability_formula")
    assert len(engine.analyzed) == 1
    assert engine.analyzed[0]["R_G4_T1"] == 0.5