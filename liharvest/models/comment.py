"""Post comment models."""

from pydantic import BaseModel, ConfigDict, Field


class CommentActor(BaseModel):
    """
    Author of a comment as reported by the comments actor.

    Only the profile URL is typed; name, position, picture and the actor's
    own id come through as extra keys whatever their JSON type.
    """

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    linkedin_url: str | None = Field(default=None, alias="linkedinUrl")


class CommentRecord(BaseModel):
    """
    One comment row from a comments dataset.

    Comment id, text and timestamps vary in type between actor versions
    (numeric ids, epoch millisecond ``createdAt``), so they are kept as
    untyped extra keys and never reject a row.
    """

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    actor: CommentActor | None = None
