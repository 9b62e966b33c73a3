"""Pure domain helpers for the portal kernel (zero I/O)."""
