"""Prompt templates for the AI judgment collaborator."""
