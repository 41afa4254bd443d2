[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "framely"
version = "0.1.0"
description = "Crawl a website with headless Chrome and capture a full-page screenshot of every page."
requires-python = ">=3.10"
keywords = ["screenshot", "crawler", "sitemap", "robots.txt", "headless", "chrome", "devtools"]
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
    "Topic :: Internet :: WWW/HTTP :: Site Management",
    "Topic :: Multimedia :: Graphics :: Capture :: Screen Capture",
]
dependencies = [
    "requests",
    "websocket-client",
]

[project.optional-dependencies]
test = [
    "pytest",
    "responses",
]

[project.scripts]
framely = "framely.cli:main"

[tool.hatch.build.targets.wheel]
packages = ["framely"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"
