"""BlockFactory — build live Block instances from block specs.

For each spec the factory:

1. resolves html and an embedded behavior class through the TemplateLoader
2. picks the class: explicit ``script`` > template script > default class
3. constructs the block and awaits ``init()``; a failure drops the block
4. builds the declared children concurrently, each failure isolated
5. awaits ``after_init_children()``
6. loads html lazily when a behavior class set ``template`` itself

Per-block state machine:

    constructing ─► init ─┬─► init-failed (dropped)
                          └─► children ─► after_init_children ─► registered

Only `LayoutConfigError` escapes; every other failure is reported to the
layout's error sink with the block's ``{block, template, script}`` context.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from blocklayout.blocks import ROOT_PARENT, Block
from blocklayout.compiler import ScriptCompiler
from blocklayout.exceptions import BlockDefinitionError, LayoutConfigError, LayoutError
from blocklayout.template_loader import TemplateArtifact, TemplateLoader
from blocklayout.utils.aio import gather_strict

if TYPE_CHECKING:
    from blocklayout.layout import Layout

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class BlockSpec:
    """What the factory needs to build one block.

    Attributes:
        name: Block name (unique in the tree)
        template: Template path
        script: Explicit behavior class, import path or .py file
        parent: Parent block name
        config: The block's raw configuration
    """

    name: str | None
    template: str | None = None
    script: Any = None
    parent: str = ROOT_PARENT
    config: Mapping[str, Any] = field(default_factory=dict)

    @classmethod
    def from_config(cls, config: Mapping[str, Any], parent: str | None = None) -> BlockSpec:
        return cls(
            name=config.get("name"),
            template=config.get("template"),
            script=config.get("script"),
            parent=config.get("parent") or parent or ROOT_PARENT,
            config=config,
        )

    @property
    def context(self) -> dict[str, str]:
        """Error context known for this spec."""
        context: dict[str, str] = {}
        if self.name:
            context["block"] = self.name
        if self.template:
            context["template"] = self.template
        if self.script:
            context["script"] = getattr(self.script, "__qualname__", str(self.script))
        return context


class BlockFactory:
    """Create blocks and their subtrees for a Layout.

    Args:
        layout: Owning layout (error sink, session, cache, options)
        templates: Template artifact loader
        compiler: Resolves explicit ``script`` entries
        default_class: Class used when neither a script nor the template
            provides one
    """

    __slots__ = ("_compiler", "_default_class", "_layout", "_templates")

    def __init__(
        self,
        layout: Layout,
        templates: TemplateLoader,
        compiler: ScriptCompiler,
        default_class: type[Block] = Block,
    ):
        self._layout = layout
        self._templates = templates
        self._compiler = compiler
        self._default_class = default_class

    async def load_blocks(self, specs: Iterable[Mapping[str, Any]], parent: str) -> list[Block]:
        """Build sibling blocks concurrently and register them in order.

        Raises:
            BlockDefinitionError: A spec has neither template nor script.
            DuplicateBlockError: A name is already used in the tree.
        """
        session = self._layout.session
        batch = [BlockSpec.from_config(config, parent) for config in specs]
        for spec in batch:
            if not spec.template and not spec.script:
                raise BlockDefinitionError(spec.name)
            if spec.name:
                session.reserve(spec.name, template=spec.template)

        blocks = await gather_strict(self.load_block(spec) for spec in batch)
        loaded = [block for block in blocks if block is not None]

        # A dropped parent can orphan a sibling that named it, and that
        # sibling's own dependents in turn.
        while dangling := [block for block in loaded if not session.claimed(block.parent)]:
            for block in dangling:
                self._layout.report(
                    LayoutError(
                        f"Parent block '{block.parent}' of '{block.name}' does not exist",
                        block=block.name,
                        template=block.template,
                    ),
                    block=block.name,
                    template=block.template,
                )
                session.release(block.name)
            loaded = [block for block in loaded if block not in dangling]

        for block in loaded:
            session.register(block)
        return loaded

    async def load_block(self, spec: BlockSpec) -> Block | None:
        """Build one block; isolated failures yield None.

        A nameless spec is rejected before anything is built, so none of
        its declared children reach the tree.
        """
        layout = self._layout
        if not spec.name:
            message = "A block has no name" if spec.template else "A block has no name and no template"
            layout.report(LayoutError(message, template=spec.template), **spec.context)
            return None

        try:
            block = await self.create_block(spec)
        except LayoutConfigError:
            raise
        except Exception as exc:
            layout.report(exc, **spec.context)
            layout.session.release(spec.name)
            return None

        if block is None:
            layout.session.release(spec.name)
        return block

    async def create_block(self, spec: BlockSpec) -> Block | None:
        """Instantiate, initialize and expand one block.

        Returns None when ``init()`` fails.

        Raises:
            TemplateNotFoundError: The template file does not exist.
            ScriptCompileError: An explicit script cannot be loaded.
        """
        artifact = await self._templates.load(spec.template) if spec.template else None
        cls = self.resolve_class(spec, artifact)
        layout = self._layout
        block = cls(
            layout,
            name=spec.name,
            html=artifact.html if artifact else None,
            config=spec.config,
            parent=spec.parent,
            data=spec.config.get("data"),
            template=spec.template,
            cache=layout.cache,
        )

        try:
            await block.init()
        except LayoutConfigError:
            raise
        except Exception as exc:
            layout.report(exc, **spec.context)
            return None

        children = block.get_children_block()
        if children:
            await self.load_blocks(children, block.name)

        try:
            await block.after_init_children()
        except LayoutConfigError:
            raise
        except Exception as exc:
            layout.report(exc, **spec.context)

        if not block.html and not spec.template and block.template:
            late = await self._templates.load(block.template)
            if late.html:
                block.html = late.html

        logger.debug("created block %r (%s)", block.name, type(block).__qualname__)
        return block

    def resolve_class(self, spec: BlockSpec, artifact: TemplateArtifact | None) -> type[Block]:
        if spec.script:
            return self._compiler.load(spec.script, self._layout.options.view_paths)
        if artifact is not None and artifact.behavior is not None:
            return artifact.behavior
        return self._default_class
