"""
Triage Module
=============

Bounded Context for background ticket triage.

Responsibilities:
- Classify new tickets through the external classification service
- Normalize classifier output, fall back to keyword rules when it fails
- Assign a handler by skill match, falling back to an admin
- Notify the assigned handler
- Keep the ticket status state machine coherent under partial failure
"""

__version__ = "1.0.0"
