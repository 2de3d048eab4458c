"""Utility helpers for the media store."""
