"""Formula documents bundled with authplay."""
