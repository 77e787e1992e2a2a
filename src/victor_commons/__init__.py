"""Shared ambient utilities for the Victor marketplace packages."""
