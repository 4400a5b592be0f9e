"""Realtime chat core: sessions, channels, messages, moderation and voice."""
