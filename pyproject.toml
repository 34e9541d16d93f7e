[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "ckb_capsule"
version = "0.1.0"
description = "Build, test and debug CKB smart contracts in a Docker build image"
requires-python = ">=3.11"
keywords = ["ckb", "nervos", "smart-contract", "docker", "bech32", "build"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Environment :: Console",
    "Intended Audience :: Developers",
    "Operating System :: POSIX",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Software Development :: Build Tools",
]
dependencies = [
    "tomlkit",
    "pyyaml",
    "requests",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[project.scripts]
capsule = "ckb_capsule.cli:main"

[tool.hatch.build.targets.wheel]
packages = ["ckb_capsule"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py311"

[tool.mypy]
python_version = "3.11"
warn_unused_ignores = true
