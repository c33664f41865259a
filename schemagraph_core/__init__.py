"""Relationship discovery between database tables and ORM models."""
