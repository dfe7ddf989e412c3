"""Mutating admission webhook that routes pod image pulls through Harbor proxy-cache projects."""

__version__ = "1.0.0"
