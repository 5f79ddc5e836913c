from typing import Any, Dict

from sqlalchemy.engine import make_url
from sqlalchemy.pool import StaticPool

from omnimap_sqlalchemy_adapter import BaseSQLAlchemyAdapter

MEMORY = ":memory:"


class SqliteAdapter(BaseSQLAlchemyAdapter):
    """SQLite through aiosqlite. Accepts ``filename`` (or ``database`` / ``url``)."""

    dialect = "sqlite"

    def _database(self) -> str:
        args = self.connection_args
        if args.get("url"):
            return make_url(str(args["url"])).database or MEMORY
        return str(args.get("filename") or args.get("database") or MEMORY)

    def construct_uri(self, args: Dict[str, Any]) -> str:
        database = self._database()
        if database == MEMORY:
            return "sqlite+aiosqlite://"
        return f"sqlite+aiosqlite:///{database}"

    def engine_options(self) -> Dict[str, Any]:
        if self._database() == MEMORY:
            # One shared connection, otherwise every checkout sees an empty database.
            return {"poolclass": StaticPool, "connect_args": {"check_same_thread": False}}
        return {}
