"""Risk register error hierarchy.

All project exceptions inherit from RiskRegisterError, enabling:
- ``except RiskRegisterError`` at top-level boundaries (SyncOrchestrator, CLI)
- Fine-grained catches deeper in the stack (``except AuthError``)

Hierarchy (subclasses defined in their respective modules):
    RiskRegisterError                       # this module
    ├── UserCancelled                       # this module
    ├── ConfigError                         # config.py
    ├── AuthError                           # drive/tokens.py
    ├── ProviderUnavailable                 # drive/tokens.py
    ├── NetworkError                        # drive/executor.py
    ├── ResponseTooLarge                    # drive/executor.py
    ├── RemoteError                         # drive/client.py
    ├── LocalFileError                      # local.py
    └── ParseError                          # envelope.py
"""

from __future__ import annotations


class RiskRegisterError(Exception):
    """Base class for all risk register errors."""


class UserCancelled(RiskRegisterError):
    """A picker or consent prompt was dismissed. Not a failure."""
