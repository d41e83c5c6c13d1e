[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "mimeforge"
version = "0.1.0"
description = "Build, encode and inspect MIME e-mail messages, including delivery status reports"
requires-python = ">=3.10"
dependencies = []
keywords = ["mime", "email", "multipart", "dsn", "rfc2045", "rfc2047", "rfc3464"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Communications :: Email",
    "Topic :: Software Development :: Libraries :: Python Modules",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["mimeforge"]

[tool.pytest.ini_options]
addopts = "-ra"
testpaths = ["tests"]
