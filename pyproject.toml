[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "bsnadapt"
version = "0.1.0"
description = "Self-adaptive control loop for a simulated body sensor network: reliability and cost engines, enactor controller and parameter adapter."
requires-python = ">=3.10"
dependencies = []
keywords = ["self-adaptive", "mape-k", "body sensor network", "control", "reliability"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Science/Research",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Scientific/Engineering :: Medical Science Apps.",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["bsnadapt"]

[tool.pytest.ini_options]
addopts = "-ra"
