from typing import Any, Dict

from omnimap_sqlalchemy_adapter import BaseSQLAlchemyAdapter, build_url


class MysqlAdapter(BaseSQLAlchemyAdapter):
    """MySQL / MariaDB through aiomysql."""

    dialect = "mysql"

    def construct_uri(self, args: Dict[str, Any]) -> str:
        return build_url("mysql+aiomysql", args, default_port=3306)

    def engine_options(self) -> Dict[str, Any]:
        options = super().engine_options()
        if "connection_limit" in self.connection_args:
            options["pool_size"] = int(self.connection_args["connection_limit"])
        return options
