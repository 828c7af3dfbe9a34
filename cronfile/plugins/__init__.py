"""Optional listeners for cronfile notification channels."""
