[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "cfostore"
version = "0.1.0"
description = "Storage pieces for a financial-document assistant: sanitised file layout, JSON-ready records, vector filtering helpers and a SQLite store."
requires-python = ">=3.10"
dependencies = []
keywords = ["storage", "sqlite", "rag", "finance", "json", "retrieval"]
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
    "Topic :: Database",
    "Typing :: Typed",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["cfostore"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
