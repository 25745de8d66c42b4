# bsnadapt

`bsnadapt` is the adaptation side of a simulated body sensor network (BSN). It
runs a monitor–analyze–plan–execute loop over the network's components. No
transport is built in. You pass in plain callables for data access, for
publishing and for building the QoS model, so the loop can be wired to any
middleware or driven from tests.

## Modules

- `bsnadapt.messages` holds the frozen message dataclasses: `Strategy`,
  `EnergyStatus`, `AdaptationCommand`, `ExceptionMessage` and `Event`. It also
  holds these helpers:
  - `component_to_task("/g3t1_1")` returns `"G3_T1_1"`.
  - `task_to_component("G3_T1_1")` returns `"/g3t1_1"`.
  - `parse_pairs("a:1;b:2")` returns `[("a", "1"), ("b", "2")]`. It skips empty
    segments and raises `ValueError` for a segment that has no `:`.
- `bsnadapt.engine` holds the following:
  - `QosModel` is an algebraic formula over named terms. It supports `+ - * / ^`,
    parentheses and unary minus. Its `terms` attribute lists the names in the
    formula, and `evaluate(values)` computes the result. A term with no value
    raises `KeyError`.
  - `encode_strategy(strategy, prefix)` builds the enactor text, for example
    `/g3t1_1:0.890000;/g4t1:0.200000`.
  - `DataAccessError` is the exception that data-access callables raise when
    the repository cannot be reached.
  - `Engine` is the abstract base of the engines. It holds the strategy, the
    priorities and the deactivated components. It provides `fetch_formula`,
    `setup_formula`, `calculate_qos`, `receive_exception`, `monitor`,
    `execute` and `run`.
- `bsnadapt.reliability_engine.ReliabilityEngine` keeps the overall reliability
  (`R_` terms) near a setpoint.
- `bsnadapt.cost_engine.CostEngine` keeps the overall cost (`W_` terms) near a
  setpoint. On every analysis it also publishes an `EnergyStatus`.
- `bsnadapt.enactor.Enactor` is the abstract enactor. It asks the engine which
  attribute it adapts, stores the reference values that the engine sends, and
  polls the repository for current values.
- `bsnadapt.controller.Controller` is a proportional enactor.
  - It changes frequency for the central hub `/g4t1` and for sensors.
  - With `adaptation_parameter="replicate_collect"` it changes the collection
    replication of sensors instead of their frequency.
  - Under the cost strategy it also sets voltage.
  - When a component stays outside the stability margin for more than four
    cycles, it sends an `ExceptionMessage` such as `/g3t1_1=1` to `/engine`. A
    component that stays inside the margin for that long produces
    `/g3t1_1=-1`.
  - If no publishers are given, the messages are collected in `adapt_sent` and
    `exceptions_sent`.
- `bsnadapt.param_adapter.ParamAdapter` registers components with
  `module_connect(name, connection)`. It forwards each `AdaptationCommand` to
  the publisher of the target's `reconfigure_<name>` topic, and returns
  `False` for unknown targets.

## Data-access queries

An engine calls `data_access(name, query)` with `name` set to `"/engine"`. It
sends these queries:

- `"<attribute>_formula"` asks for the formula, for example
  `R_G3_T1_1 * R_G4_T1`.
- `"all:<attribute>:<info_quant>"` asks for the current values. The quantity is
  written with six decimals, for example `all:reliability:10.000000`. The
  answer looks like `/g3t1_1:0.9,0.95;/g4t1:1`, and the last value of each
  component is used.
- `"all:event:1"` asks for the component events. The answer looks like
  `/g3t1_1:activate;/g4t1:deactivate`.

The enactor asks for `all:reliability:` or `all:cost:`. Under cost, each value
is followed by a back-quoted voltage list, for example
`/g3t1_1:0.5`` ` ``1.0`.

## Example

```python
from bsnadapt.reliability_engine import ReliabilityEngine

def data_access(name, query):
    if query == "reliability_formula":
        return "R_G3_T1_1 * R_G4_T1"
    if query.startswith("all:reliability:"):
        return "/g3t1_1:0.9;/g4t1:0.95"
    if query == "all:event:1":
        return "/g3t1_1:activate;/g4t1:activate"
    return ""

engine = ReliabilityEngine(data_access, publish=print, setpoint=0.9, gain=0.1, offset=0.1)
engine.run(iterations=1)
print(engine.strategy)
```

`run()` with no count loops forever. It waits one second between formula
fetches until it gets a formula, and then sleeps `1 / monitor_freq` between
cycles.

## Installation

```
pip install .
pip install .[test]
pytest
```

## What it does not do

- There is no command-line program.
- There is no message broker and no service layer.
- There is no knowledge repository.
- The sensors and the central hub are not simulated.

All of these are reached only through the callables you supply.