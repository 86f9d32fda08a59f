"""Tests for the portfolio_api package."""
