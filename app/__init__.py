"""
Backend Starter: HTTP service template.

Application package root. Wires an HTTP server, a document database
connection, a Redis connection, security middleware and a typed error
hierarchy.

Layers:
    - infrastructure: Collaborator connections (MongoDB, Redis).
    - interfaces: FastAPI routers, Pydantic schemas.
    - shared: Cross-cutting concerns (errors, security, logging).
"""
