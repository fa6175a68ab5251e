"""Adapters binding the sync engine ports to concrete infrastructure."""
