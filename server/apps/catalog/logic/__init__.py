"""Business logic layer for catalog app.

- ``catalog``: in-memory record collection, queries and mutations
- ``session``: catalog plus persistence, stale-listing guard, notifications
- ``upload_operations`` and ``quota_operations``: storing file contents
  within a user's storage limit

The catalog itself is plain Python and does not touch Django; everything
that talks to the database or object storage is reached through the
session.
"""
