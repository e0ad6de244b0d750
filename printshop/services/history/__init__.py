"""Order status history and duration-in-status computation."""
