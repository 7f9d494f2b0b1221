"""Source modules."""
