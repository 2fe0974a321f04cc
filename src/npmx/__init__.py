"""npmx server: build info and cached npm package file trees."""

__version__ = "0.1.0"
