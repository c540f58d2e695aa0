"""Read-only snapshots returned by signal sources."""

from typing import Annotated

from pydantic import Field

from branchfeed.data_model import StrictBaseModel


class FollowEdge(StrictBaseModel):
    """One directed follow relationship."""

    follower_id: str
    following_id: str


class ProfileSnapshot(StrictBaseModel):
    """Profile view used by follow suggestions.

    Attributes:
        id: Profile identifier.
        username: Display handle.
        avatar_url: Avatar reference.
        followers_count: Number of followers, when the source computed it.
        stories_count: Number of root stories authored.
    """

    id: Annotated[str, Field(min_length=1)]
    username: str
    avatar_url: str | None = None
    followers_count: Annotated[int, Field(ge=0)] = 0
    stories_count: Annotated[int, Field(ge=0)] = 0


class StorySnapshot(StrictBaseModel):
    """Root story view used by recommendations.

    Attributes:
        id: Story identifier.
        author_id: Author profile identifier.
        title: Story title.
        description: Optional description.
        media_url: Cover media reference.
        media_type: Cover media kind.
        likes_count: Like counter.
        views_count: View counter.
        branches_count: Number of nodes in the story's tree.
        author_username: Author handle, if joined.
    """

    id: Annotated[str, Field(min_length=1)]
    author_id: str
    title: str
    description: str | None = None
    media_url: str | None = None
    media_type: str | None = None
    likes_count: Annotated[int, Field(ge=0)] = 0
    views_count: Annotated[int, Field(ge=0)] = 0
    branches_count: Annotated[int, Field(ge=0)] = 0
    author_username: str | None = None
