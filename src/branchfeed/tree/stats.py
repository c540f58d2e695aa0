"""Path popularity statistics for a story tree."""

from collections import Counter
from collections.abc import Iterable, Sequence
from typing import Annotated

from pydantic import Field

from branchfeed.data_model import StrictBaseModel
from branchfeed.tree.models import ChoiceToken, Path, format_path
from branchfeed.tree.tree import StoryTree


class PathInfo(StrictBaseModel):
    """Statistics for one complete path through a story.

    Attributes:
        path: The leaf path.
        path_string: Display form, e.g. 'A → B'.
        user_count: Readers whose saved path equals this path.
        percentage: Share of readers with saved progress on this path.
    """

    path: tuple[ChoiceToken, ...]
    path_string: str
    user_count: Annotated[int, Field(ge=0)] = 0
    percentage: Annotated[float, Field(ge=0.0, le=100.0)] = 0.0


def compute_path_statistics(
    tree: StoryTree,
    progress_paths: Iterable[Sequence[ChoiceToken]],
) -> list[PathInfo]:
    """Count how many readers ended up on each complete path.

    Every reader with saved progress counts toward the total, including
    readers still mid-way or at the root.

    Args:
        tree: Story tree to enumerate leaf paths from.
        progress_paths: Saved paths, one per reader.

    Returns:
        One entry per leaf path, most popular first. Ties keep tree order.
    """
    counts: Counter[Path] = Counter()
    total = 0
    for saved in progress_paths:
        total += 1
        path = tuple(saved)
        if path:
            counts[path] += 1

    infos = [
        PathInfo(
            path=leaf,
            path_string=format_path(leaf),
            user_count=counts[leaf],
            percentage=(counts[leaf] / total) * 100 if total else 0.0,
        )
        for leaf in tree.iter_leaf_paths()
    ]
    infos.sort(key=lambda info: info.user_count, reverse=True)
    return infos
