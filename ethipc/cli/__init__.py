"""CLI module for ethipc."""
