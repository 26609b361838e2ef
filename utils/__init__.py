"""Shared helpers for the complaint engine, persistence, email, and request handling."""
