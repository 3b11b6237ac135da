"""Persistence repositories for the sync engine."""
