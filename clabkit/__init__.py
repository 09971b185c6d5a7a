"""Building blocks for container network labs: ordering, checks, variables and generated files."""

__version__ = "0.1.0"