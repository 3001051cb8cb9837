"""Application layer: configuration and use cases."""
