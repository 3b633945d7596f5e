"""
Agora Governance Package

Core imports are lazily loaded so that importing a submodule does not pull in
the whole engine. For direct module access, import from submodules:

    from agora.governance import DelegateVoting, QuadraticVoting
    from agora.tokens import SnapshotToken
    from agora.exceptions import GovernanceError
"""

__version__ = "0.1.0"


# Lazy imports to avoid loading everything at package import
def __getattr__(name):
    """Lazy module loading."""
    if name == 'DelegateVoting':
        from .governance import DelegateVoting
        return DelegateVoting
    elif name == 'QuadraticVoting':
        from .governance import QuadraticVoting
        return QuadraticVoting
    elif name == 'SnapshotToken':
        from .tokens import SnapshotToken
        return SnapshotToken
    elif name == 'GovernanceError':
        from .exceptions import GovernanceError
        return GovernanceError
    raise AttributeError(f"module 'agora' has no attribute {name!r}")

__all__ = ['DelegateVoting', 'QuadraticVoting', 'SnapshotToken', 'GovernanceError']
