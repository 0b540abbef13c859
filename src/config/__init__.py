"""Configuration - Settings and logging setup."""
