[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "featurerun"
version = "0.12.0"
description = "Build and run Go feature-suite test runners: runner builder, command line flags, formatter registry and ANSI colour helpers"
requires-python = ">=3.10"
dependencies = []
keywords = ["bdd", "cucumber", "gherkin", "feature", "testing", "runner", "go"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Environment :: Console",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Software Development :: Testing :: BDD",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
featurerun = "featurerun.cli:main"

[tool.hatch.build.targets.wheel]
packages = ["featurerun"]

[tool.pytest.ini_options]
addopts = "-ra"
