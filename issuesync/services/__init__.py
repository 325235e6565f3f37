"""Sync services: store, diffing, conflict detection, remapping, pull and push."""
