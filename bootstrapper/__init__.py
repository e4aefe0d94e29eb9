"""Transcriber bootstrap — unattended installer orchestrator."""

__version__ = "0.1.0"
