"""Zenhub board access."""

from decadog.zenhub.client import Board, IssueDetails, Pipeline, ZenhubClient

__all__ = ["Board", "IssueDetails", "Pipeline", "ZenhubClient"]
