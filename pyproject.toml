[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "schedmix"
version = "0.1.0"
description = "Find cheapest and shortest ingredient mixing routes for every reachable set of product effects"
requires-python = ">=3.10"
dependencies = []
keywords = [
    "mixing",
    "shortest-path",
    "multiobjective",
    "pareto",
    "combinatorics",
    "game",
]
classifiers = [
    "Development Status :: 4 - Beta",
    "Environment :: Console",
    "Intended Audience :: End Users/Desktop",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Games/Entertainment :: Simulation",
    "Typing :: Typed",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
schedmix = "schedmix.cli:main"

[tool.hatch.build.targets.wheel]
packages = ["schedmix"]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
