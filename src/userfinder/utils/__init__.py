"""Shared utilities for userfinder."""
