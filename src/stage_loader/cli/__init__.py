"""Command-line interface for stage-loader."""
