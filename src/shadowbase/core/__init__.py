"""Core infrastructure for ShadowBase: configuration, logging, and hooks."""
