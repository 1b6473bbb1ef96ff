"""Water utility billing back office: period finalization and payment reconciliation."""

__version__ = "0.1.0"
