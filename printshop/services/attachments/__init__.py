"""Order attachment lifecycle and file naming."""
