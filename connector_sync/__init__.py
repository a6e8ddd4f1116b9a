"""Scheduled synchronisation of external data sources into tenant search indexes."""
