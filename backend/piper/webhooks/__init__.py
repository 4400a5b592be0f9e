"""Incoming webhooks: external services post bot messages into a channel."""
