"""Bicycle route ordering and fallback routing service."""
