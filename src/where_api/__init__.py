"""Progress tracking API for guided catalog explorations."""

DESCRIPTION = "Where API: step progress and live locations for catalog items"
__version__ = "0.1.0"
