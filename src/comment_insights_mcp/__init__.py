"""Comment sentiment and topic analytics for YouTube and Reddit, served over MCP."""

__version__ = "0.1.0"
