"""Bakery management backend."""
