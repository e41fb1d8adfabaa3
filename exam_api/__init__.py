"""Timed exam attempt engine."""
