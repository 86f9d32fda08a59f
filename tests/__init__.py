"""Test suite for the trading journal."""
