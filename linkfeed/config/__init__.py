"""Configuration for LinkFeed."""
