"""git-dash: multi-platform pull request and issue dashboard backend."""

__version__ = "0.1.0"
