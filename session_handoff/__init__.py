"""Session Handoff - portable handoff documents from AI coding sessions."""

__version__ = "0.1.0"
