"""Route-planning state engine with a thin HTTP surface."""

__version__ = "0.1.0"
