"""Core configuration for the comments add-on."""
