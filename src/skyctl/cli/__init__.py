"""Command-line entrypoint and argparse binding."""
