"""Capture-session orchestration."""
