"""labctl - Kubernetes lab topology planner."""

__version__ = "0.1.0"
