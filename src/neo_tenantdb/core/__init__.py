"""Core building blocks for neo-tenantdb."""
