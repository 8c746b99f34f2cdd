"""Data access for injections and inventory."""
