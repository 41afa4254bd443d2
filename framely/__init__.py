"""Crawl a website with headless Chrome and save screenshots of its pages, with a JSON report."""

__version__ = "0.1.0"