"""
Shared error handling package.

Defines the application error taxonomy and centralizes error-to-HTTP
mapping so that every failure is translated into one JSON response.
"""
