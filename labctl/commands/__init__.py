from . import generate, plan, validate

__all__ = ['generate', 'plan', 'validate']
