"""Remote generation service adapters."""
