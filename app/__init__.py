"""Notification subsystem: storage, lifecycle rules and realtime delivery."""
