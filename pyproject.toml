[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "fortiprobe"
version = "0.1.0"
description = "Prometheus exporter that probes FortiGate firewalls through their REST API"
requires-python = ">=3.10"
keywords = ["prometheus", "exporter", "fortigate", "fortios", "monitoring", "metrics", "bgp"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Environment :: No Input/Output (Daemon)",
    "Intended Audience :: System Administrators",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Networking :: Monitoring",
]
dependencies = [
    "pyyaml",
    "requests",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[project.scripts]
fortiprobe = "fortiprobe.app:main"

[tool.hatch.build.targets.wheel]
packages = ["fortiprobe"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.ruff.lint]
select = ["E", "F", "W", "I", "B", "UP"]

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
ignore_missing_imports = true
