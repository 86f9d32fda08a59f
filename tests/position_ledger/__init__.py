"""Tests for the position_ledger package."""
