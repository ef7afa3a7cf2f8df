"""Speed limit provider clients (HERE primary, Overpass fallback)."""
