"""Stampman adapters."""
