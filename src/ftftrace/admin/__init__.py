"""Trace inspection helpers and the admin API."""
