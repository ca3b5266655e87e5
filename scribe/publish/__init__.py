"""
Publishing of the generated site to content-addressed storage.
"""

from .base import Publisher, PublishState
from .ipfs import IpfsPublisher, collect_tree

__all__ = ["Publisher", "PublishState", "IpfsPublisher", "collect_tree"]
