"""Household task tracker with reminder scheduling and SMS/WhatsApp delivery."""

__version__ = "1.0.0"
