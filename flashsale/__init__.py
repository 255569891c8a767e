"""Flash-sale inventory server comparing locking strategies for concurrent purchases."""

__version__ = "0.1.0"

__all__ = ["__version__"]