"""Services for the textpod server."""
