"""HTTP surface for the market trends service."""
