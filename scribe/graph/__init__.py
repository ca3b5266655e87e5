"""
Cross-post reference graph.
"""

from .backlinks import BacklinkIndex, backlink_hash, build_backlink_index, outbound_hash, sorted_backlinks

__all__ = ["BacklinkIndex", "build_backlink_index", "sorted_backlinks", "backlink_hash", "outbound_hash"]
