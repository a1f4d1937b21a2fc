"""Mission data sources: the HTTP mission API and SQLite mission files."""
