"""Bulk importer for Base Off client/contract spreadsheets.

Pipeline: ingest -> header mapping -> row normalization -> buffered upsert.
"""

__version__ = "0.1.0"
