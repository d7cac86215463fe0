"""HTTP routers for the settlement service."""
