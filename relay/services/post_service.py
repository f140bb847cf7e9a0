import asyncio
from dataclasses import dataclass, field
from typing import Awaitable, Callable

from relay.logging_config import get_logger
from relay.services.facebook_service import ChannelPostError

logger = get_logger("post_service")

Poster = Callable[[dict], Awaitable[dict]]


@dataclass
class PostReport:
    successful_posts: list[dict] = field(default_factory=list)
    failed_posts: list[dict] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failed_posts

    def to_dict(self) -> dict:
        return {"successfulPosts": self.successful_posts, "failedPosts": self.failed_posts}


def _outgoing_messages(params: dict, merge_message: bool) -> list[dict]:
    messages = params.get("message")
    if not isinstance(messages, list):
        return [params]
    if merge_message:
        rest = {k: v for k, v in params.items() if k != "message"}
        return [{**rest, **m} for m in messages]
    return [{**params, "message": m} for m in messages]


async def post_multiple_messages(params: dict, post: Poster, *, merge_message: bool = False) -> PostReport:
    """Post one reply per element of `params["message"]` when it is a list, else a single reply.

    With `merge_message` each element's fields are lifted to the top level
    (Slack wants `text` beside `channel`); otherwise the element replaces
    `message` (Facebook). An element with `response_type == "pause"` is not
    posted; it delays the next reply by its `time` in milliseconds.

    Replies go out in order; the first failure stops the rest so the user
    never sees a later message without the earlier one.
    """
    outgoing = _outgoing_messages(params, merge_message)

    report = PostReport()
    for index, post_params in enumerate(outgoing):
        if post_params.get("response_type") == "pause":
            await asyncio.sleep((post_params.get("time") or 0) / 1000)
            continue
        try:
            report.successful_posts.append(await post(post_params))
        except ChannelPostError as e:
            report.failed_posts.append({"index": index, "errorMessage": e.message, "statusCode": e.status_code})
            logger.warning(
                "Channel post failed, skipping remaining messages",
                extra={"context": {"index": index, "remaining": len(outgoing) - index - 1, "error": e.message}},
            )
            break
    return report
