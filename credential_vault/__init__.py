"""Encrypted per-user, per-agent, per-platform credential storage."""
