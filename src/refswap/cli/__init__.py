"""Command-line interface for refswap."""
