"""Telegram bot relaying AI crypto trend analysis and signal alerts."""
