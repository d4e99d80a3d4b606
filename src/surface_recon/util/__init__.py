"""Shared helpers: configuration, logging, time and concurrency."""
