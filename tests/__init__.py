"""Tests for bzmenu."""
