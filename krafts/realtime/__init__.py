"""Realtime chat over WebSockets."""
