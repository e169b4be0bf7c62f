"""Hotwills CLI."""
