"""Low-level DNS and HTTP probes."""
