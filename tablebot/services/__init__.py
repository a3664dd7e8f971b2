"""Outbound API clients, command parsing and table rendering."""
