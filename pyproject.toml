[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "chatservice"
version = "0.1.0"
description = "SQLite-backed repositories for chat call logs, statuses, reports, contacts, groups, reviews and backups"
requires-python = ">=3.10"
dependencies = []
keywords = ["chat", "messaging", "groups", "call-logs", "statuses", "sqlite"]
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
    "Topic :: Communications :: Chat",
    "Topic :: Database",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["chatservice"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
