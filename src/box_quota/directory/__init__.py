"""Directory API access: models, HTTP client and token coordination."""
