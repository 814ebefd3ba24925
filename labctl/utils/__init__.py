"""Input/output helpers around the planning engine."""
