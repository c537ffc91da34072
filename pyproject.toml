[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "aquanav"
version = "0.1.0"
description = "Underwater vehicle control components: ZeroMQ topics, subsystems, missions and nonlinear MPC"
requires-python = ">=3.10"
keywords = ["auv", "underwater", "mpc", "zeromq", "robotics", "mission-planning"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Science/Research",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Scientific/Engineering :: Interface Engine/Protocol Translator",
]
dependencies = [
    "numpy",
    "scipy",
    "pyzmq",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[tool.hatch.build.targets.wheel]
packages = ["aquanav"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
