"""userfinder -- HTTP service for finding users by display name.

The service exposes one versioned route that decodes a lookup command from
the request body and hands it to a sink, wrapped in a listener lifecycle
that starts in the background and drains gracefully on SIGINT/SIGTERM.
"""

__version__ = "0.1.0"
