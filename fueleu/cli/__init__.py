"""FuelEU CLI - Main entry point."""
from fueleu.cli.main import app, main

__all__ = ["app", "main"]
