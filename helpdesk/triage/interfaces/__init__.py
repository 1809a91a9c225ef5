"""
Triage Interfaces Layer
========================

Inbound adapters for the ticket triage module.

Contains:
- Events: consumer for "ticket created" events
"""

from helpdesk.triage.interfaces.events import TriageEventConsumer

__all__ = ["TriageEventConsumer"]
