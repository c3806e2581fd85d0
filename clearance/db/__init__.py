"""Persistence layer for the clearance portal."""
