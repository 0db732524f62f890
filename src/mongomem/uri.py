"""Connection string construction.

Usage:
    from mongomem.uri import ConnectionOptions, build_uri

    build_uri("127.0.0.1", 27017, "customDB")
    # mongodb://127.0.0.1:27017/customDB?
    build_uri("127.0.0.1", 27017, options=ConnectionOptions(db_name="app", replica_set="rs0"))
    # mongodb://127.0.0.1:27017/app?replicaSet=rs0
"""

import uuid
from urllib.parse import quote, urlencode

from pydantic import BaseModel


class ConnectionOptions(BaseModel):
    """Recognized connection-string options.

    db_name is the default database segment; every other field maps to a
    query parameter and is emitted only when set.
    """

    db_name: str | None = None
    replica_set: str | None = None
    auth_source: str | None = None
    direct_connection: bool | None = None
    read_preference: str | None = None
    w: str | int | None = None
    retry_writes: bool | None = None

    model_config = {"frozen": True}

    def query_params(self) -> list[tuple[str, str]]:
        """Return set options as (name, value) pairs in a fixed order."""
        mapping = (
            ("replicaSet", self.replica_set),
            ("authSource", self.auth_source),
            ("directConnection", self.direct_connection),
            ("readPreference", self.read_preference),
            ("w", self.w),
            ("retryWrites", self.retry_writes),
        )
        params = []
        for name, value in mapping:
            if value is None:
                continue
            if isinstance(value, bool):
                value = "true" if value else "false"
            params.append((name, str(value)))
        return params


def generate_db_name() -> str:
    """Random database name, unique per call."""
    return uuid.uuid4().hex


def build_uri(
    host: str,
    port: int,
    db_name_or_flag: str | bool | None = None,
    options: ConnectionOptions | None = None,
) -> str:
    """Build a mongodb:// URI.

    Args:
        host: Host or IP the instance is bound to
        port: Bound port
        db_name_or_flag: True for a fresh random database name, a string for
            that literal name, None (or False) for options.db_name
        options: Default database name and query options

    Returns:
        mongodb://<host>:<port>/<db>?<query>, the "?" always present
    """
    options = options or ConnectionOptions()

    if db_name_or_flag is True:
        db_name = generate_db_name()
    elif isinstance(db_name_or_flag, str):
        db_name = db_name_or_flag
    else:
        db_name = options.db_name or ""

    query = urlencode(options.query_params())
    return f"mongodb://{host}:{port}/{quote(db_name, safe='')}?{query}"
