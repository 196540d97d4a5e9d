"""build-cache - A remote directory cache for build pipelines.

This package provides tools for:
- Deriving stable cache keys from a mount path and branch
- Archiving build directories to S3-compatible object storage
- Restoring cached directories before a build starts
"""

__version__ = "0.1.0"
