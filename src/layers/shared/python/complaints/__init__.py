"""Complaints pipeline: ingestion, processing and notification workers."""

__version__ = "0.1.0"
