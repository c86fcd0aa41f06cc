"""Server surfaces (HTTP and MCP) for textpod."""
