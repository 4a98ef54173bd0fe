[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "slidermix"
version = "0.1.0"
description = "Control per-application audio volume with physical sliders attached over a serial port"
requires-python = ">=3.10"
keywords = ["audio", "volume", "mixer", "serial", "sliders", "pulseaudio"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Environment :: Console",
    "Intended Audience :: End Users/Desktop",
    "Operating System :: POSIX :: Linux",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Multimedia :: Sound/Audio :: Mixers",
]
dependencies = [
    "pyyaml>=6.0",
    "pyserial>=3.5",
]

[project.optional-dependencies]
test = [
    "pytest>=7.0",
]

[project.scripts]
slidermix = "slidermix.cli:main"

[tool.hatch.build.targets.wheel]
packages = ["slidermix"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
ignore_missing_imports = true
