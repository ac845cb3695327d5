"""Pydantic schemas exchanged with collaborators."""
