"""Optimistic, realtime-reconciled entity stores for the CMMS client."""

__version__ = "0.1.0"
