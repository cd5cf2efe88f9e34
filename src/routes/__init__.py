"""
API Routes Package
==================
Support code for the route handlers in api.py.

Modules:
  helpers  - body parsing, redirects, health payload, GitHub token check
  sessions - server-side session records behind a signed session-id cookie
"""
