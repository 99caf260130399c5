"""Exception types raised across the gateway."""


class GatewayError(Exception):
    """Base class for gateway errors."""


class ConfigError(GatewayError):
    """No usable configuration source, or a malformed value."""


class QueryRejected(GatewayError, ValueError):
    """The query guard refused the statement before any database access."""


class QueryError(GatewayError):
    """The database failed while executing a permitted statement."""


class SchemaError(GatewayError):
    """The schema snapshot could not be produced."""
