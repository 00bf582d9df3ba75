"""Command-line tools: training driver and model utilities."""
