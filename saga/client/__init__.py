"""Terminal client for the SAGA relay."""
