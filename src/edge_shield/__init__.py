"""Edge Shield - tiered caching and heuristic image protection at the edge."""

__version__ = "0.1.0"
