"""Tests for webhook intake and dispatch."""
