"""DEADLINE - archive of forgotten news events."""
