from typing import Any, Dict

from omnimap_sqlalchemy_adapter import BaseSQLAlchemyAdapter, build_url


class PostgresAdapter(BaseSQLAlchemyAdapter):
    """PostgreSQL through asyncpg. Inserts report their id with RETURNING."""

    dialect = "postgres"
    supports_returning = True

    def construct_uri(self, args: Dict[str, Any]) -> str:
        return build_url("postgresql+asyncpg", args, default_port=5432)

    def engine_options(self) -> Dict[str, Any]:
        options = super().engine_options()
        if "max" in self.connection_args:
            options["pool_size"] = int(self.connection_args["max"])
        return options
