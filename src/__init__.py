"""Assessment CLI application package."""
