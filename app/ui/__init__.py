"""Application-level widgets."""
