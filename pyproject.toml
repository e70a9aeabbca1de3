[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "potions"
version = "0.1.0"
description = "Locate, download, inspect and describe prebuilt software binaries for release"
requires-python = ">=3.10"
dependencies = []
keywords = ["build", "release", "binaries", "hardening", "elf", "mach-o", "tarball"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Developers",
    "Intended Audience :: System Administrators",
    "Operating System :: POSIX",
    "Operating System :: MacOS",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Software Development :: Build Tools",
    "Topic :: System :: Software Distribution",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["potions"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
