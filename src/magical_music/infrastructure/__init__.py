"""Infrastructure layer: persistence, storage, auth, realtime, observability and lifecycle."""
