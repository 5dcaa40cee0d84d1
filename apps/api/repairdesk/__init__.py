"""Repair shop scheduling and availability API."""
