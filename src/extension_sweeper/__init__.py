"""Delete files by extension with a bounded worker pool."""
