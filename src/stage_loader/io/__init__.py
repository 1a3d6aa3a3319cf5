"""I/O layer: object storage and the warehouse loader."""
