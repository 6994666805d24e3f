[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "orbmapping"
version = "0.1.0"
description = "ORB feature extraction, two-view triangulation helpers and loop-candidate consistency checks for sparse visual mapping"
requires-python = ">=3.10"
dependencies = [
    "numpy",
]
keywords = ["orb", "fast", "feature extraction", "descriptors", "triangulation", "computer vision"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Science/Research",
    "Intended Audience :: Developers",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Operating System :: OS Independent",
    "Topic :: Scientific/Engineering :: Image Recognition",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[tool.hatch.build.targets.wheel]
packages = ["orbmapping"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
