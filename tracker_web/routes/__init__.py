"""HTTP routers for the card tracker API."""
