"""Status change notifications."""
