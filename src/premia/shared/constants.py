"""Shared constants for option pricing."""

CONTRACT_MULTIPLIER = 100
STRIKE_SCALE = 1000
STRIKE_DIGITS = 8
