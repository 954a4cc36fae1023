"""REST and WebSocket surface of the Cricket Live relay."""
