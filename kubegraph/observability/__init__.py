"""Logging and metrics for kubegraph."""
