"""Donation leaderboard: cached completed orders rendered as an HTML fragment."""

__version__ = "1.0.0"
