[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "cadss"
version = "0.1.0"
description = "A tick-driven simulator of processors, caches, coherence, interconnect and memory"
requires-python = ">=3.10"
dependencies = []
keywords = [
    "simulator",
    "computer architecture",
    "cache",
    "coherence",
    "branch prediction",
    "interconnect",
    "trace",
    "splay tree",
]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Environment :: Console",
    "Intended Audience :: Education",
    "Intended Audience :: Science/Research",
    "Operating System :: POSIX",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Education",
    "Topic :: System :: Emulators",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
cadss-engine = "cadss.engine:main"

[tool.hatch.build.targets.wheel]
packages = ["cadss"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
