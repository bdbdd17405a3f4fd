"""HTTP endpoint module for userfinder.

Provides the FastAPI application with its versioned route table, and the
listener lifecycle that serves it on a background thread and shuts it down
gracefully on SIGINT/SIGTERM.
"""
