[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "otelop"
version = "0.1.0"
description = "Upgrade routines and resource helpers for OpenTelemetry Collector instances"
requires-python = ">=3.10"
dependencies = [
    "pyyaml>=6",
    "semver>=3",
]
keywords = ["opentelemetry", "collector", "kubernetes", "operator", "upgrade"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: System Administrators",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Systems Administration",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["otelop"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
