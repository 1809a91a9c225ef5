"""
Helpdesk Triage
===============

Background triage for helpdesk tickets: classification through an external
LLM service, normalization, skill-based handler assignment and notification.
"""

__version__ = "1.0.0"
