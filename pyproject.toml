[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "awesome-lint"
version = "0.1.0"
description = "Validate a curated awesome-list README: link health, popularity thresholds, item template and ordering"
requires-python = ">=3.10"
keywords = ["awesome-list", "markdown", "link-checker", "lint", "github", "crates"]
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
    "Topic :: Internet :: WWW/HTTP :: Site Management :: Link Checking",
    "Topic :: Text Processing :: Markup :: Markdown",
]
dependencies = [
    "httpx>=0.24",
    "markdown-it-py>=2.2",
    "pyyaml>=6.0",
    "humanize>=4.0",
]

[project.optional-dependencies]
test = [
    "pytest>=7.0",
    "pytest-asyncio>=0.21",
    "respx>=0.20",
]

[project.scripts]
awesome-lint = "awesome_lint.linkcheck:main"
awesome-cleanup = "awesome_lint.cleanup:main"
awesome-hacktoberfest = "awesome_lint.hacktoberfest:main"

[tool.hatch.build.targets.wheel]
packages = ["awesome_lint"]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
ignore_missing_imports = true
