"""Spark: one-time-code sign-in, mutual-like matching and polled chat."""

__version__ = "1.0.0"
