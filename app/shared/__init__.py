"""
Shared module package.

Cross-cutting pieces wired into the application factory:
- Error taxonomy, collaborator adapters and the response renderer
- Security middleware and rate limiting
- Logging configuration
"""
