"""Bundled taxonomy, synonym and rule documents."""
