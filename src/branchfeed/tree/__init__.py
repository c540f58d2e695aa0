"""Branching-tree domain model.

Stories, nodes and paths, plus resolution of a path to the node it reaches.
Pure data and logic, no I/O.
"""

from branchfeed.tree.errors import (
    InvalidPathToken,
    PathDepthExceeded,
    PathValidationError,
)
from branchfeed.tree.models import (
    Choice,
    ChoicePair,
    ChoiceToken,
    Path,
    Story,
    StoryNode,
    TreeBranch,
    format_path,
    validate_path,
)
from branchfeed.tree.stats import PathInfo, compute_path_statistics
from branchfeed.tree.tree import StoryTree


__all__ = [
    "Choice",
    "ChoicePair",
    "ChoiceToken",
    "InvalidPathToken",
    "Path",
    "PathDepthExceeded",
    "PathInfo",
    "PathValidationError",
    "Story",
    "StoryNode",
    "StoryTree",
    "TreeBranch",
    "compute_path_statistics",
    "format_path",
    "validate_path",
]
