"""HTTP API for the clearance portal."""
