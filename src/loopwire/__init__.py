"""Telegram notifications, questions and remote control for an autonomous agent loop."""
