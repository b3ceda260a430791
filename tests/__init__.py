"""Tests for the lazymigrate library."""
