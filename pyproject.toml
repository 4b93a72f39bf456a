[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "rvbridge"
version = "2.0.0"
description = "Bridge between home-automation accessories and an RV-C CAN bus: coach profiles, packet encoding and accessory state machines"
requires-python = ">=3.10"
dependencies = []
keywords = ["rv-c", "can-bus", "homekit", "rv", "home-automation", "bridge"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Developers",
    "Intended Audience :: End Users/Desktop",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Home Automation",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
rvbridge = "rvbridge.bridge:main"

[tool.hatch.build.targets.wheel]
packages = ["rvbridge"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"
