"""Web component exposing the edge layer over HTTP."""
