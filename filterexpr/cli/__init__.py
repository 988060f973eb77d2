"""Command-line interface for filterexpr."""
