"""Main FastMCP server: mounts all sub-servers."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastmcp import FastMCP

from .services import close_services
from .tools.comments import comments_server
from .tools.infra import infra_server

logger = logging.getLogger(__name__)


@asynccontextmanager
async def _lifespan(server: FastMCP):
    """Startup/shutdown hook: closes the provider client and the store."""
    yield {}
    closed = await close_services()
    logger.info("Lifespan shutdown: services %s", "closed" if closed else "never started")


app = FastMCP(
    "comment-insights",
    instructions=(
        "Comment analytics for creators: sentiment, toxicity, topics, and "
        "engagement across YouTube and Reddit comments, with cached per-comment "
        "verdicts, per-source rollups, and a daily sentiment timeline."
    ),
    lifespan=_lifespan,
)

app.mount(comments_server)
app.mount(infra_server)


def main() -> None:
    """Entry-point for ``comment-insights-mcp`` console script."""
    app.run()


if __name__ == "__main__":
    main()
