"""Link preview rendering and caching service."""

__version__ = "1.0.0"
