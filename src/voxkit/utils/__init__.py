"""Audio codec and timing helpers."""
