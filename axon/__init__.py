"""AXON - interactive code assistant for a local code model server."""

__version__ = "0.3.0"
