[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "mdfeed"
version = "1.0.0"
description = "Simulated exchange market-data feed: binary tick protocol, GBM price generator, subscription server and client-side building blocks."
requires-python = ">=3.10"
dependencies = []
keywords = [
    "market data",
    "exchange simulator",
    "tick data",
    "binary protocol",
    "geometric brownian motion",
    "latency",
]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Developers",
    "Intended Audience :: Financial and Insurance Industry",
    "Operating System :: POSIX",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Office/Business :: Financial :: Investment",
    "Topic :: System :: Networking",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
mdfeed-server = "mdfeed.server:main"

[tool.hatch.build.targets.wheel]
packages = ["mdfeed"]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.ruff.lint]
select = ["E", "F", "W", "I", "B", "UP"]

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
