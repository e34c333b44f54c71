"""Tests for Homefence."""
