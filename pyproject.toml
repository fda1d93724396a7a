[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "warpjobs"
version = "0.1.0"
description = "Job scheduling, reward and eviction logic for an automated job controller and its user accounts, kept in memory."
requires-python = ">=3.10"
dependencies = []
keywords = ["jobs", "scheduler", "keeper", "automation", "smart-contract", "rewards", "eviction"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Office/Business :: Financial",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["warpjobs"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
