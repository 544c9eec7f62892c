"""File records module for Maestro.

This module owns the canonical per-file status view shown to the user:
- FileRecord: name, size label, status, progress and error of one file
- validate(): admission checks run before any network call
- FileRecordStore: the single, name-keyed, deduplicated record collection

Supported file types:
- Any text/* MIME type (.txt, .md, .json, .csv, .log, .xml, .yaml, .yml)
- Documents: pdf

At most 5 files are admitted per batch.
"""
