"""Local artifact storage."""
