"""Errors, logging, work directories and the message bridge."""
