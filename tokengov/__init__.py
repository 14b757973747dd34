"""
tokengov Package

Token-weighted governance for fund-transfer proposals.

Core imports are lazily loaded so that importing the package does not set up
logging. For direct module access, import from submodules:

    from tokengov.governance import GovernanceEngine, GovernorConfig
    from tokengov.config import load_config, build_engine
"""

# Lazy imports to avoid loading everything at package import
def __getattr__(name):
    if name == 'GovernanceEngine':
        from .governance import GovernanceEngine
        return GovernanceEngine
    elif name == 'GovernorConfig':
        from .governance import GovernorConfig
        return GovernorConfig
    elif name == 'load_config':
        from .config import load_config
        return load_config
    raise AttributeError(f"module 'tokengov' has no attribute {name!r}")

__all__ = ['GovernanceEngine', 'GovernorConfig', 'load_config']
