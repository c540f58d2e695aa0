"""Arena-backed branching tree with path resolution."""

from collections.abc import Iterable, Iterator, Sequence

import structlog

from branchfeed.tree.models import (
    Choice,
    ChoicePair,
    ChoiceToken,
    Path,
    Story,
    StoryNode,
    TreeBranch,
    validate_path,
)


logger = structlog.get_logger()


class StoryTree:
    """A story and its nodes, indexed by path prefix.

    Nodes live in a flat arena keyed by the path that reaches them, so
    resolution is an indexed lookup rather than a pointer walk. The tree is
    immutable once built.
    """

    def __init__(self, story: Story, arena: dict[Path, StoryNode]) -> None:
        """Initialize the tree.

        Use ``StoryTree.build`` to construct from raw nodes.

        Args:
            story: Root story.
            arena: Mapping of path -> node, already validated.
        """
        self._story = story
        self._arena = dict(arena)

    @classmethod
    def build(cls, story: Story, nodes: Iterable[StoryNode]) -> "StoryTree":
        """Build a tree from a story and its stored nodes.

        Nodes are placed in depth order. A node is skipped (and logged) when
        it belongs to another story, exceeds max_depth, points at an unknown
        parent, breaks the depth invariant, or claims a slot that is already
        taken. The first node for a slot wins.

        Args:
            story: Root story.
            nodes: Stored nodes in any order.

        Returns:
            The built tree.
        """
        log = logger.bind(component="tree", story_id=story.id)
        ordered = sorted(nodes, key=lambda n: n.depth)

        arena: dict[Path, StoryNode] = {}
        path_by_id: dict[str, Path] = {}
        depth_by_id: dict[str, int] = {}
        skipped = 0

        for node in ordered:
            reason = None
            parent_path: Path = ()

            if node.story_id != story.id:
                reason = "foreign_story"
            elif node.depth > story.max_depth:
                reason = "beyond_max_depth"
            elif node.parent_node_id is not None:
                if node.parent_node_id not in path_by_id:
                    reason = "unknown_parent"
                elif depth_by_id[node.parent_node_id] + 1 != node.depth:
                    reason = "depth_mismatch"
                else:
                    parent_path = path_by_id[node.parent_node_id]

            path = (*parent_path, node.choice_label)
            if reason is None and path in arena:
                reason = "duplicate_slot"

            if reason is not None:
                skipped += 1
                log.warning("tree_node_skipped", node_id=node.id, reason=reason)
                continue

            arena[path] = node
            path_by_id[node.id] = path
            depth_by_id[node.id] = node.depth

        log.debug("tree_built", node_count=len(arena), skipped=skipped)
        return cls(story, arena)

    @property
    def story(self) -> Story:
        """Get the root story."""
        return self._story

    @property
    def story_id(self) -> str:
        """Get the story identifier."""
        return self._story.id

    @property
    def max_depth(self) -> int:
        """Get the maximum path length."""
        return self._story.max_depth

    @property
    def node_count(self) -> int:
        """Number of nodes in the tree (the feed's branch count)."""
        return len(self._arena)

    def resolve_node(self, path: Sequence[object]) -> StoryNode | None:
        """Resolve a path to the node it reaches.

        Args:
            path: Tokens from the root. Must already be validated.

        Returns:
            The node at depth ``len(path)``, or None for the empty path (the
            root is the story itself) and for dangling paths.

        Raises:
            InvalidPathToken: If the path contains anything but A/B.
        """
        checked = validate_path(path)
        if not checked:
            return None
        return self._arena.get(checked)

    def can_extend(self, path: Sequence[object]) -> bool:
        """Check whether another choice fits under max_depth."""
        return len(path) < self.max_depth

    def has_children(self, path: Sequence[object]) -> bool:
        """Check whether any child node exists below a path."""
        checked = validate_path(path)
        return any((*checked, token) in self._arena for token in ChoiceToken)

    def is_terminal(self, path: Sequence[object]) -> bool:
        """Check whether a path is at the end of its branch.

        A path is terminal at max_depth or when no child node exists.
        """
        return not self.can_extend(path) or not self.has_children(path)

    def child_choices(self, position: Story | StoryNode) -> ChoicePair:
        """Return the outgoing A/B choices from a position.

        The root exposes the story's own choices when it has them, and
        otherwise the first real nodes.

        Args:
            position: The story (root) or a node of this tree.

        Returns:
            Pair of choices, with None for missing options.
        """
        if isinstance(position, StoryNode):
            return ChoicePair(a=position.choice_a, b=position.choice_b)

        if position.choice_a is not None or position.choice_b is not None:
            return ChoicePair(a=position.choice_a, b=position.choice_b)

        return ChoicePair(
            a=self._choice_from_node(self._arena.get((ChoiceToken.A,))),
            b=self._choice_from_node(self._arena.get((ChoiceToken.B,))),
        )

    def choices_at(self, path: Sequence[object]) -> ChoicePair:
        """Return the outgoing choices after walking a path.

        Dangling paths have no choices.
        """
        checked = validate_path(path)
        if not checked:
            return self.child_choices(self._story)
        node = self._arena.get(checked)
        if node is None:
            return ChoicePair()
        return self.child_choices(node)

    def longest_resolvable_prefix(self, path: Sequence[object]) -> Path:
        """Return the longest prefix of a path that resolves to a node.

        Args:
            path: Validated tokens.

        Returns:
            The longest resolvable prefix (possibly empty).
        """
        checked = validate_path(path)
        for length in range(len(checked), 0, -1):
            if checked[:length] in self._arena:
                return checked[:length]
        return ()

    def iter_nodes(self) -> Iterator[tuple[Path, StoryNode]]:
        """Iterate over (path, node) pairs, shallow first, A before B."""
        yield from sorted(self._arena.items(), key=lambda item: _path_sort_key(item[0]))

    def iter_leaf_paths(self) -> Iterator[Path]:
        """Iterate over every complete path (root to leaf), A before B."""
        for path, _node in self._walk(()):
            if not self.has_children(path):
                yield path

    def outline(self) -> list[TreeBranch]:
        """Build a nested view of the tree for visualisation.

        Returns:
            Depth-1 branches, each with nested children, A before B.
        """
        return [self._branch(path) for path in self._child_paths(())]

    def _branch(self, path: Path) -> TreeBranch:
        return TreeBranch(
            node=self._arena[path],
            path=path,
            children=[self._branch(child) for child in self._child_paths(path)],
        )

    def _child_paths(self, path: Path) -> list[Path]:
        return [
            (*path, token) for token in ChoiceToken if (*path, token) in self._arena
        ]

    def _walk(self, path: Path) -> Iterator[tuple[Path, StoryNode]]:
        for child in self._child_paths(path):
            yield child, self._arena[child]
            yield from self._walk(child)

    @staticmethod
    def _choice_from_node(node: StoryNode | None) -> Choice | None:
        if node is None:
            return None
        return Choice(
            label=node.choice_label.value,
            content=node.content,
            media_url=node.media_url,
        )


def _path_sort_key(path: Path) -> tuple[int, tuple[str, ...]]:
    return (len(path), tuple(token.value for token in path))
