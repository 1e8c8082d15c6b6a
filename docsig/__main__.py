"""
Module entry point for: python -m docsig

Allows running the CLI directly as a module:
    python -m docsig analyze <response_json> --time-ms 1200 [options]
    python -m docsig report [options]
    python -m docsig compare <id_a> <id_b> [options]
"""

from .cli import cli


def main():
    cli()


if __name__ == "__main__":
    main()
