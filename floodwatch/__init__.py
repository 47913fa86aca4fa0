"""Floodwatch: crowd-sourced flood report ingestion and lifecycle backend."""

__version__ = "0.1.0"
