"""HTTP routes and error mapping for the gateway."""
