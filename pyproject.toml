[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "tiowire"
version = "0.1.0"
description = "Packet codec and TCP, UDP and serial ports for the TIO sensor wire protocol"
requires-python = ">=3.10"
dependencies = [
    "pyserial",
]
keywords = ["tio", "sensor", "protocol", "serial", "slip", "packet", "rpc"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Developers",
    "Intended Audience :: Science/Research",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Scientific/Engineering :: Interface Engine/Protocol Translator",
    "Topic :: Software Development :: Libraries :: Python Modules",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[tool.hatch.build.targets.wheel]
packages = ["tiowire"]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"
