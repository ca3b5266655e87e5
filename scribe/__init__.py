"""
Scribe - a minimal static site generator.

Turns a directory of Markdown posts with YAML frontmatter into a static
site with cross-post backlinks, optional AI illuminated initials, and
optional publishing to IPFS. Builds are incremental: only pages whose
content, backlinks or site settings changed are regenerated.

Main entry point is the CLI via `scribe generate` command.

Example:
    $ scribe generate --config config.yaml
"""

__all__ = ["__version__", "load_config", "run_build", "slugify"]
__version__ = "0.1.0"

from .config import load_config
from .core.slug import slugify
from .runner import run_build
