"""Infrastructure layer: error handling and monitoring."""
