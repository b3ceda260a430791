"""Integration tests for lazymigrate."""
