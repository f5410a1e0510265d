"""
Shared API
==========

Middleware and exception handlers shared by all routers.
"""
