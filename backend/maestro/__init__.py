"""Maestro — document ingestion pipeline and status reconciliation."""
