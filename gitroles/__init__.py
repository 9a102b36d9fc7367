"""gitroles — Discord roles from GitHub contributions and stars."""

__version__ = "0.1.0"
