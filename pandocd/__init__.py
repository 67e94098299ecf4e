"""HTTP service that fetches documents and converts them with pandoc."""

__version__ = "0.1.0"