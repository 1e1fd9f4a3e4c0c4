"""
ghcr-prune: retention-policy based pruning of GitHub container package versions.
"""

__version__ = "0.1.0"
