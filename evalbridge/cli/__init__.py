"""CLI module for evalbridge."""
