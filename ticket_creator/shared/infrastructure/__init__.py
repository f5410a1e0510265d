"""
Infrastructure Layer
=====================

Low-level technical concerns:
- Structured logging setup
- Credential redaction
"""
