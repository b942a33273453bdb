"""Application layer: background workers."""
