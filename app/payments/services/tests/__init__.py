"""Tests for payment services."""
