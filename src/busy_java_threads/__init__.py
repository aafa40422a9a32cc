"""Show the stack traces of the busiest threads of running Java processes."""

__version__ = "0.1.0"
