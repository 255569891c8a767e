[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "flashsale"
version = "0.1.0"
description = "Flash-sale inventory demo server comparing locking strategies for concurrent purchases"
requires-python = ">=3.10"
keywords = [
    "flash-sale",
    "inventory",
    "concurrency",
    "locking",
    "optimistic-locking",
    "pessimistic-locking",
    "flask",
    "sqlalchemy",
]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Environment :: Web Environment",
    "Framework :: Flask",
    "Intended Audience :: Developers",
    "Intended Audience :: Education",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Internet :: WWW/HTTP :: HTTP Servers",
    "Topic :: Database",
]
dependencies = [
    "sqlalchemy>=2.0",
    "flask>=2.2",
]

[project.optional-dependencies]
test = [
    "pytest>=7.0",
]

[project.scripts]
flashsale = "flashsale.app:main"

[tool.hatch.build.targets.wheel]
packages = ["flashsale"]

[tool.hatch.build.targets.sdist]
include = [
    "flashsale",
    "tests",
    "README.md",
    "pyproject.toml",
]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 88
target-version = "py310"

[tool.ruff.lint]
select = ["E", "F", "W", "I", "B", "UP"]

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
warn_redundant_casts = true
