"""Main entry point for the view engine command line."""
from .cli import app

if __name__ == "__main__":
    app()
