"""Authorization decision engine: roles, scoped assignments, resolution."""
