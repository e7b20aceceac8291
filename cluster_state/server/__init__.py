"""HTTP server, configuration, access checks and snapshot aggregation."""
