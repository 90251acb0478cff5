[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "evmbaseline"
version = "0.1.0"
description = "A baseline Ethereum Virtual Machine interpreter core: instruction traits, gas cost tables, execution state, jump destination analysis and a dispatch loop."
requires-python = ">=3.10"
dependencies = []
keywords = ["ethereum", "evm", "interpreter", "bytecode", "gas"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Software Development :: Interpreters",
    "Typing :: Typed",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["evmbaseline"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
strict = true
