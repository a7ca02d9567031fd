[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "ovsdblib"
version = "2.0.0"
description = "OVSDB (RFC 7047) client library: schema handling, monitors, transactions and an in-memory database replica"
requires-python = ">=3.10"
dependencies = []
keywords = ["ovsdb", "openvswitch", "rfc7047", "json-rpc", "database", "monitor"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Developers",
    "Intended Audience :: System Administrators",
    "Operating System :: POSIX",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Database",
    "Topic :: System :: Networking",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["ovsdblib"]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
