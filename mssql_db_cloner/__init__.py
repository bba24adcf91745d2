"""Copy a live SQL Server database onto the same instance."""

from .__version__ import __version__

__all__ = ["__version__"]
