"""Unit tests for story tree models."""

import pytest
from pydantic import ValidationError

from branchfeed.tree.errors import InvalidPathToken
from branchfeed.tree.models import (
    Choice,
    ChoicePair,
    ChoiceToken,
    StoryNode,
    format_path,
    validate_path,
)
from tests.helpers.builders import make_story


class TestValidatePath:
    """Tests for strict path validation."""

    def test_accepts_tokens_and_exact_strings(self) -> None:
        """Test ChoiceToken values and 'A'/'B' strings are accepted."""
        assert validate_path([ChoiceToken.A, "B", "A"]) == (
            ChoiceToken.A,
            ChoiceToken.B,
            ChoiceToken.A,
        )

    def test_empty_path_is_root(self) -> None:
        """Test the empty sequence validates to the root path."""
        assert validate_path([]) == ()

    @pytest.mark.parametrize("bad", ["a", "C", "", " A", "AB", 1, None])
    def test_rejects_anything_else(self, bad: object) -> None:
        """Test lowercase, padded, multi-char and non-string tokens are rejected."""
        with pytest.raises(InvalidPathToken):
            validate_path(["A", bad])

    def test_error_reports_position(self) -> None:
        """Test the error carries the offending token and its index."""
        with pytest.raises(InvalidPathToken) as exc_info:
            validate_path(["A", "B", "X"])

        assert exc_info.value.position == 2
        assert exc_info.value.token == "X"


class TestFormatPath:
    """Tests for display formatting."""

    def test_joins_with_arrow(self) -> None:
        """Test tokens are joined with an arrow."""
        assert format_path((ChoiceToken.A, ChoiceToken.B)) == "A → B"

    def test_root_is_empty(self) -> None:
        """Test the root formats as an empty string."""
        assert format_path(()) == ""


class TestStory:
    """Tests for Story model."""

    def test_defaults(self) -> None:
        """Test default max_depth and counters."""
        story = make_story(max_depth=5)
        assert story.max_depth == 5
        assert story.likes_count == 0
        assert story.choice_a is None

    def test_negative_max_depth_rejected(self) -> None:
        """Test max_depth must be non-negative."""
        with pytest.raises(ValidationError):
            make_story(max_depth=-1)

    def test_unknown_field_rejected(self) -> None:
        """Test extra fields are forbidden."""
        with pytest.raises(ValidationError):
            make_story(unknown="x")

    def test_frozen(self) -> None:
        """Test stories are immutable."""
        story = make_story()
        with pytest.raises(ValidationError):
            story.title = "changed"  # type: ignore[misc]


class TestStoryNode:
    """Tests for StoryNode model."""

    def test_depth_one_without_parent(self) -> None:
        """Test depth-1 nodes hang off the root."""
        node = StoryNode(id="n1", story_id="s", choice_label=ChoiceToken.A, depth=1)
        assert node.parent_node_id is None

    def test_depth_one_with_parent_rejected(self) -> None:
        """Test depth-1 nodes must not name a parent."""
        with pytest.raises(ValidationError, match="must not have a parent"):
            StoryNode(
                id="n1",
                story_id="s",
                parent_node_id="n0",
                choice_label=ChoiceToken.A,
                depth=1,
            )

    def test_deep_node_requires_parent(self) -> None:
        """Test deeper nodes must name a parent."""
        with pytest.raises(ValidationError, match="requires a parent"):
            StoryNode(id="n2", story_id="s", choice_label=ChoiceToken.B, depth=2)

    def test_depth_zero_rejected(self) -> None:
        """Test depth starts at 1."""
        with pytest.raises(ValidationError):
            StoryNode(id="n0", story_id="s", choice_label=ChoiceToken.A, depth=0)


class TestChoicePair:
    """Tests for ChoicePair."""

    def test_get_and_available(self) -> None:
        """Test lookup by token and available tokens."""
        pair = ChoicePair(a=Choice(label="Left"))
        assert pair.get(ChoiceToken.A) == Choice(label="Left")
        assert pair.get(ChoiceToken.B) is None
        assert pair.available == (ChoiceToken.A,)

    def test_empty_pair(self) -> None:
        """Test an empty pair offers nothing."""
        assert ChoicePair().available == ()
