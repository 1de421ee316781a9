"""HTTP routers for the booking core."""
