"""Container block: output is its children's output, in declaration order."""

from __future__ import annotations

from blocklayout.blocks.base import Block


class Container(Block):
    """Concatenate the rendered children; own html and data are ignored.

    Children render concurrently, but `Layout.render_blocks()` returns them
    in declaration order, so ``A``, ``B``, ``C`` always yield ``"ABC"``.
    """

    async def render_html(self) -> str:
        rendered = await self.layout.render_blocks(self.name)
        return "".join(rendered.values())
