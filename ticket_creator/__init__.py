"""
Syncro AI Ticket Creator
========================

Modular monolith turning free-text incident descriptions into Syncro tickets.
"""

__version__ = "1.4.0"
