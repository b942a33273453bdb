"""HTTP layer: middleware chain, route table and error boundary."""
