"""
Infrastructure layer package.

Connections to the services the application depends on
(document database, Redis). Opened and closed by the app lifespan.
"""
