"""Command-line interface (``python -m docrag.cli``)."""
