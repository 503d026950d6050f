"""Mock win/lose snapshot API backed by MongoDB."""
