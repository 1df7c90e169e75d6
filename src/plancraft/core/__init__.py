"""Interface contracts."""
