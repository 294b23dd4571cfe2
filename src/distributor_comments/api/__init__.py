"""HTTP API of the comments add-on."""
