[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "pandocd"
version = "0.1.0"
description = "HTTP service that fetches documents and converts them with pandoc"
requires-python = ">=3.11"
keywords = ["pandoc", "document conversion", "http", "wsgi", "markdown", "pdf"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Environment :: Web Environment",
    "Intended Audience :: Developers",
    "Intended Audience :: System Administrators",
    "Operating System :: POSIX",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Internet :: WWW/HTTP :: HTTP Servers",
    "Topic :: Internet :: WWW/HTTP :: WSGI :: Application",
    "Topic :: Text Processing :: Markup",
]
dependencies = [
    "jinja2>=3.1",
    "werkzeug>=3.0",
]

[project.optional-dependencies]
test = [
    "pytest>=7.4",
]

[project.scripts]
pandocd = "pandocd.cli:main"

[tool.hatch.build.targets.wheel]
packages = ["pandocd"]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py311"

[tool.ruff.lint]
select = ["E", "F", "W", "I", "B", "UP"]

[tool.mypy]
python_version = "3.11"
warn_unused_ignores = true
warn_redundant_casts = true
