"""Moderation admin API."""
