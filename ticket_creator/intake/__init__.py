"""
Intake Module
=============

Bounded Context turning a technician's free-text description into a
Syncro ticket.

Responsibilities:
- Extract organization, user, device reference, subject, issue and
  problem category with the completion service
- Resolve the extraction against the directory cache
- Drive the review session (disambiguation, edits, asset choice)
- Submit the reviewed draft as a ticket
"""

__version__ = "1.4.0"
