"""Enrichment backend adapters for the scheduling module."""
