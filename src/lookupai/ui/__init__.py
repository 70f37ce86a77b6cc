"""Lookup pane: explanation session, rendering and events."""
