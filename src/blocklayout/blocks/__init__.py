"""Built-in block classes."""

from blocklayout.blocks.base import ROOT_PARENT, Block, action
from blocklayout.blocks.container import Container

__all__ = ["ROOT_PARENT", "Block", "Container", "action"]
