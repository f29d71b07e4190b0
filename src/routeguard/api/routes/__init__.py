"""Operational API routes."""
