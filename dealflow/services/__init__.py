"""Domain services: deal scoring and proposal intake lifecycle."""
