"""Application services: events, lifecycle and workflow wiring."""
