"""Account gateway service."""
