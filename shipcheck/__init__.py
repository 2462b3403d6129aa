"""shipcheck: verify a branch before opening a pull request."""

__version__ = "1.0.0"
