"""Reporting - form entry feeds."""

from .form_entries import FormEntryFeed, FormEntryReporter, unique_ids

__all__ = ["FormEntryReporter", "FormEntryFeed", "unique_ids"]
