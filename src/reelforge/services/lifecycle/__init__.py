"""Operation lifecycle: polling, extension chains and the exposed operations."""
