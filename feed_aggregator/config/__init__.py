"""Settings and source list loading."""
