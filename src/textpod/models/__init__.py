"""Data models for the textpod server."""
