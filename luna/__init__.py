"""Luna — a small social network API."""
