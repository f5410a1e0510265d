"""
Directory Module
================

Bounded context holding the remote directory of customers (organizations),
contacts and assets mirrored from Syncro.

Responsibilities:
- Background load of all organizations and their contacts
- Synchronous substring lookups over the loaded snapshot
- On-demand asset reads per organization
"""

__version__ = "1.4.0"
