[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "httpkit"
version = "0.1.0"
description = "A small HTTP toolkit: a JSON client with retries and a gracefully stopping WSGI server"
requires-python = ">=3.10"
dependencies = []
keywords = ["http", "json", "client", "retry", "wsgi", "server", "graceful-shutdown"]
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
    "Topic :: Internet :: WWW/HTTP",
    "Topic :: Internet :: WWW/HTTP :: WSGI :: Server",
    "Topic :: Software Development :: Libraries :: Python Modules",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["httpkit"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
