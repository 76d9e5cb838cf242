"""HTTP surface: the scrape endpoint and a health check."""
