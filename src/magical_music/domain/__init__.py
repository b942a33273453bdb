"""Domain layer: exceptions and value objects with no framework dependencies."""
