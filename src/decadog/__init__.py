"""decadog: GitHub and Zenhub sprint toolkit.

Provides:
- layered configuration (config file, environment, OS keyring)
- structured logging
- an interactive session that assigns tickets to a sprint milestone
"""

__version__ = "0.1.0"

from decadog.config.resolver import Config, resolve

__all__ = ["__version__", "Config", "resolve"]
