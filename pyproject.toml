[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "spokeagent"
version = "0.4.0"
description = "Status and gateway-labelling controllers for a multi-cluster networking add-on agent running on a managed cluster"
requires-python = ">=3.10"
dependencies = []
keywords = [
    "kubernetes",
    "multi-cluster",
    "controller",
    "gateway",
    "addon",
    "status-conditions",
]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: System Administrators",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Clustering",
    "Topic :: System :: Networking",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["spokeagent"]

[tool.hatch.build.targets.sdist]
include = ["spokeagent", "tests"]

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
warn_redundant_casts = true
