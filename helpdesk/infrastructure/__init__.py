"""
Infrastructure Layer
=====================

Technical building blocks shared by the bounded contexts:
- Database engine and session management
- LLM client wrappers
"""
