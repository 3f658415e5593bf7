"""Content delivery building blocks: cache storage, configuration server and test tools."""

__version__ = "0.1.0"