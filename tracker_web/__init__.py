"""Backend package for the card tracker API."""
