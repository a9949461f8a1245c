"""HTTP and WebSocket transport for the chat relay."""
