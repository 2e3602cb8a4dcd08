"""Adapters between the catalog and external systems.

- ``storage``: S3-compatible object storage for file contents
- ``backend``: asynchronous persistence of catalog records
- ``metadata``: MIME type, checksum and size helpers
"""
