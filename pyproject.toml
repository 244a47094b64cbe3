[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "vkubelet"
version = "0.1.0"
description = "Building blocks for a node agent that plays the kubelet's role with a pluggable provider backend"
requires-python = ">=3.10"
dependencies = []
keywords = ["kubernetes", "kubelet", "virtual-node", "provider", "tracing"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Environment :: Console",
    "Intended Audience :: Developers",
    "Intended Audience :: System Administrators",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Distributed Computing",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
vkubelet = "vkubelet.cli:main"

[tool.hatch.build.targets.wheel]
packages = ["vkubelet"]

[tool.pytest.ini_options]
addopts = "-ra"
testpaths = ["tests"]
