"""Managers package: event bus, engine manager and the game."""
