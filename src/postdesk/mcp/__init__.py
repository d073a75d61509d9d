"""MCP (stdio) server exposing the editing session as tools."""
