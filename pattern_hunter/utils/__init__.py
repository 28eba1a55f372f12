"""Utility helpers for images and files."""
