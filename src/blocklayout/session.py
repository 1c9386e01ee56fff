"""LayoutSession — the block tree of one `Layout.load_template()` call.

A Layout builds a fresh session on every load and replaces the previous one
wholesale, so nothing leaks from one page to the next.

Indices:
- ``blocks_by_name``: name -> Block, in registration order
- ``blocks_by_parent``: parent name -> children, in declaration order

Names are *reserved* before sibling blocks start loading concurrently, so a
duplicate is detected up front instead of after two subtrees were built.
"""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass, field

from blocklayout.blocks import ROOT_PARENT, Block
from blocklayout.exceptions import DuplicateBlockError, LayoutConfigError


@dataclass
class LayoutSession:
    """Block indices for one loaded tree.

    Attributes:
        blocks_by_name: Registered blocks by unique name
        blocks_by_parent: Registered children by parent name
        template_block: Block of the template passed to load_template()
        page_block: Page block in page-rendering mode
    """

    blocks_by_name: dict[str, Block] = field(default_factory=dict)
    blocks_by_parent: dict[str, list[Block]] = field(default_factory=dict)
    template_block: Block | None = None
    page_block: Block | None = None
    _reserved: set[str] = field(default_factory=set, repr=False)

    def reserve(self, name: str, *, template: str | None = None) -> None:
        """Claim `name` for a block about to load.

        Raises:
            DuplicateBlockError: If the name is registered or already claimed.
            LayoutConfigError: If the name is the top-level parent marker.
        """
        if name == ROOT_PARENT:
            raise LayoutConfigError(f"'{name}' is reserved for the top-level parent", block=name)
        if name in self._reserved or name in self.blocks_by_name:
            raise DuplicateBlockError(name, template=template)
        self._reserved.add(name)

    def release(self, name: str | None) -> None:
        """Give up a claimed name, dropping anything registered under it."""
        if name is None:
            return
        self._reserved.discard(name)
        self.discard_children(name)

    def claimed(self, name: str | None) -> bool:
        """True for the root marker and for names registered or reserved."""
        if name is None:
            return False
        return name == ROOT_PARENT or name in self._reserved or name in self.blocks_by_name

    def register(self, block: Block) -> None:
        existing = self.blocks_by_name.get(block.name)
        if existing is not None and existing is not block:
            raise DuplicateBlockError(block.name, template=block.template)
        self._reserved.add(block.name)
        self.blocks_by_name[block.name] = block
        self.blocks_by_parent.setdefault(block.parent, []).append(block)

    def discard_children(self, parent: str) -> None:
        """Unregister every descendant of `parent`."""
        for child in self.blocks_by_parent.pop(parent, []):
            self.blocks_by_name.pop(child.name, None)
            self._reserved.discard(child.name)
            self.discard_children(child.name)

    def children(self, parent: str) -> list[Block]:
        return list(self.blocks_by_parent.get(parent, ()))

    def __contains__(self, name: object) -> bool:
        return name in self.blocks_by_name

    def __iter__(self) -> Iterator[Block]:
        return iter(list(self.blocks_by_name.values()))

    def __len__(self) -> int:
        return len(self.blocks_by_name)
