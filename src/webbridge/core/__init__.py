"""Core bridge layers: messages, routing, streaming."""
