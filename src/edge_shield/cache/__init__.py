"""Cache tiers and their generation lifecycle."""
