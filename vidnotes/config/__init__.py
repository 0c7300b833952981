"""Prompt templates, backend output schemas and the note format registry."""
