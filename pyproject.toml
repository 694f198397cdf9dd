[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "sqltel"
version = "0.3.4"
description = "Tracing and metrics middleware for database drivers, with a PostgreSQL driver log adapter"
requires-python = ">=3.10"
dependencies = []
keywords = ["sql", "database", "tracing", "metrics", "telemetry", "instrumentation", "middleware"]
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
    "Topic :: Database",
    "Topic :: System :: Monitoring",
    "Topic :: Software Development :: Libraries :: Python Modules",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["sqltel"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
