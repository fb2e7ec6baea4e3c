"""Release discovery for runtimes and tools: versions, checksums, dates and metadata."""

__version__ = "0.1.0"