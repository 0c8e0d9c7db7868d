"""Status/control HTTP surface."""

from .status import StatusServer, create_app

__all__ = ["StatusServer", "create_app"]
