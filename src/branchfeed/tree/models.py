"""Data models for branching stories."""

from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from enum import Enum
from typing import Annotated, Literal

from pydantic import Field, model_validator

from branchfeed.data_model import StrictBaseModel
from branchfeed.tree.errors import InvalidPathToken


class ChoiceToken(str, Enum):
    """One step of a path: the A or B branch."""

    A = "A"
    B = "B"


Path = tuple[ChoiceToken, ...]
"""Ordered walk from the story root, one token per depth level."""

PATH_SEPARATOR = " → "

MediaType = Literal["image", "video"]


def validate_path(tokens: Iterable[object]) -> Path:
    """Convert a pre-validated token sequence into a Path.

    Only exact ``ChoiceToken`` values or the strings ``"A"``/``"B"`` are
    accepted. Lenient parsing of user input belongs to the URL codec.

    Args:
        tokens: Tokens to validate.

    Returns:
        The path as a tuple of ChoiceToken.

    Raises:
        InvalidPathToken: If any token is not exactly 'A' or 'B'.
    """
    path: list[ChoiceToken] = []
    for position, token in enumerate(tokens):
        if isinstance(token, ChoiceToken):
            path.append(token)
        elif isinstance(token, str) and token in ("A", "B"):
            path.append(ChoiceToken(token))
        else:
            raise InvalidPathToken(token, position)
    return tuple(path)


def format_path(path: Sequence[ChoiceToken]) -> str:
    """Format a path for display (e.g. 'A → B → A').

    Args:
        path: Path to format.

    Returns:
        Human-readable path string, empty for the root.
    """
    return PATH_SEPARATOR.join(token.value for token in path)


class Choice(StrictBaseModel):
    """One outgoing option at a branch point.

    Attributes:
        label: Button label shown to the reader.
        content: Optional text revealed by the choice.
        media_url: Optional media reference.
    """

    label: Annotated[str, Field(min_length=1, max_length=200)]
    content: str | None = None
    media_url: str | None = None


class Story(StrictBaseModel):
    """Root content item and implicit depth-0 root of its choice tree."""

    id: Annotated[str, Field(min_length=1)]
    title: Annotated[str, Field(min_length=1)]
    author_id: Annotated[str, Field(min_length=1)]
    description: str | None = None
    media_url: str | None = None
    media_type: MediaType | None = None
    max_depth: Annotated[int, Field(ge=0)] = 5
    likes_count: Annotated[int, Field(ge=0)] = 0
    views_count: Annotated[int, Field(ge=0)] = 0
    paths_count: Annotated[int, Field(ge=0)] = 0
    shares_count: Annotated[int, Field(ge=0)] = 0
    choice_a: Choice | None = None
    choice_b: Choice | None = None


class StoryNode(StrictBaseModel):
    """One branch point, reached from its parent by ``choice_label``.

    Attributes:
        id: Node identifier.
        story_id: Story this node belongs to.
        parent_node_id: Parent node, or None for depth-1 nodes under the root.
        choice_label: Token that leads from the parent into this node.
        depth: Tree level (1..max_depth).
        content: Text shown when the node is reached.
        media_url: Media shown when the node is reached.
        choice_a: Outgoing A option, if the author provided one.
        choice_b: Outgoing B option, if the author provided one.
    """

    id: Annotated[str, Field(min_length=1)]
    story_id: Annotated[str, Field(min_length=1)]
    parent_node_id: str | None = None
    choice_label: ChoiceToken
    depth: Annotated[int, Field(ge=1)]
    content: str | None = None
    media_url: str | None = None
    media_type: MediaType | None = None
    choice_a: Choice | None = None
    choice_b: Choice | None = None

    @model_validator(mode="after")
    def validate_parent_for_depth(self) -> "StoryNode":
        """Depth-1 nodes hang off the root; deeper nodes need a parent."""
        if self.depth == 1 and self.parent_node_id is not None:
            msg = "depth-1 nodes must not have a parent_node_id"
            raise ValueError(msg)
        if self.depth > 1 and self.parent_node_id is None:
            msg = f"depth-{self.depth} node requires a parent_node_id"
            raise ValueError(msg)
        return self


@dataclass(frozen=True)
class ChoicePair:
    """The two outgoing choices available from a position.

    Attributes:
        a: Choice for token A, None if unavailable.
        b: Choice for token B, None if unavailable.
    """

    a: Choice | None = None
    b: Choice | None = None

    def get(self, token: ChoiceToken) -> Choice | None:
        """Return the choice for a token."""
        return self.a if token is ChoiceToken.A else self.b

    @property
    def available(self) -> tuple[ChoiceToken, ...]:
        """Tokens that have a choice attached."""
        return tuple(t for t in ChoiceToken if self.get(t) is not None)


@dataclass
class TreeBranch:
    """Nested view of one node for tree visualisation.

    Attributes:
        node: The node at this position.
        path: Path that reaches the node.
        children: Child branches, A before B.
    """

    node: StoryNode
    path: Path
    children: list["TreeBranch"] = field(default_factory=list)

    @property
    def is_leaf(self) -> bool:
        """Check if the branch has no children."""
        return not self.children
