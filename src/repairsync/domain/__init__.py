"""Sync and request engine domain: value types, ports and services."""
