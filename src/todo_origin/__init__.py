"""todo-origin: find comment action items and the commits that introduced them."""

__version__ = "0.1.0"

__all__ = ["__version__"]
