[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "okestra"
version = "0.1.0"
description = "Task graphs, activity data staging and an in-memory event store for orchestrating workflows"
requires-python = ">=3.10"
dependencies = []
keywords = ["orchestration", "workflow", "dag", "event-store", "pipeline"]
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
    "Topic :: System :: Distributed Computing",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["okestra"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
