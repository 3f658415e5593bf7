[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "cdnkit"
version = "0.1.0"
description = "Building blocks for a small content delivery network: an on-disk cache store, a configuration server and test servers"
requires-python = ">=3.10"
dependencies = [
    "flask",
]
keywords = ["cdn", "cache", "proxy", "http", "configuration", "invalidation"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Intended Audience :: System Administrators",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Framework :: Flask",
    "Topic :: Internet :: Proxy Servers",
    "Topic :: Internet :: WWW/HTTP :: HTTP Servers",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[project.scripts]
cdnkit-config-server = "cdnkit.server.main:main"
cdnkit-static-server = "cdnkit.static_server:main"
cdnkit-fetch = "cdnkit.test_client:main"

[tool.hatch.build.targets.wheel]
packages = ["cdnkit"]

[tool.pytest.ini_options]
addopts = "-ra"
