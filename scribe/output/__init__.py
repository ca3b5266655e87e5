"""
Output generation.

This package assembles and writes the generated site.
"""

from .assembler import SiteAssembler, post_output_path

__all__ = ["SiteAssembler", "post_output_path"]
