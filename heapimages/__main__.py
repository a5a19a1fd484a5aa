"""Main entry point for heap-images when run as python -m heapimages."""

from .cli import app

if __name__ == "__main__":
    app()
