"""
Shared storage API.

A FastAPI service that persists a single opaque JSON document in Postgres
so client applications can synchronize their saved state, plus a
write-then-read ping used as a connectivity check.
"""
