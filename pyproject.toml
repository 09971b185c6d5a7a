[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "clabkit"
version = "0.1.0"
description = "Building blocks for container network labs: node scheduling, topology checks, link variables, template rendering, inventories, hosts entries and graphs"
requires-python = ">=3.10"
keywords = [
    "network",
    "lab",
    "containers",
    "topology",
    "ansible",
    "graphviz",
    "netops",
]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: System Administrators",
    "Intended Audience :: Telecommunications Industry",
    "Operating System :: POSIX :: Linux",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Networking",
]
dependencies = [
    "pyyaml",
    "jinja2",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[tool.hatch.build.targets.wheel]
packages = ["clabkit"]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
