"""Business metrics engine for service-business dashboards."""
