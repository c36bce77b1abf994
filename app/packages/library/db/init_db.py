"""Database bootstrapping utilities."""

from __future__ import annotations

import logging

from app.packages.library.db import session as db_session
from app.packages.library.models.base import Base
from app.packages.library.models.asset_node import AssetNode  # noqa: F401 - ensure table registration

logger = logging.getLogger(__name__)


def init_db() -> None:
    """Create all database tables if they do not exist.

    The asset namespace needs no seed rows: an empty table is an empty tree
    whose only member is the virtual root.
    """
    Base.metadata.create_all(bind=db_session.engine)
    logger.info("Database schema ensured for %s", db_session.engine.url.render_as_string(hide_password=True))
