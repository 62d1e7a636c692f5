"""
API Constants

Endpoint paths, header names and wire field names shared by the
handshake, the transport and the query orchestrator.
"""


class APIEndpoints:
    """Endpoint paths relative to the configured base URL."""

    PUBLIC_KEY = "/public-key"
    SESSION_INIT = "/session/init"
    INDEX = "/index"
    QUERY_NUMBERS = "/query-numbers"
    HEALTH = "/health"

    DEFAULT_BASE_URL = "http://127.0.0.1:3000/api"


class APIHeaders:
    """Header names understood by the query service."""

    SESSION_TOKEN = "X-Session-Token"  # noqa: S105  # nosec B105 - header name
    OBF_SALT = "X-Obf-Salt"
    CONTENT_TYPE = "Content-Type"
    ACCEPT = "Accept"

    CONTENT_TYPE_JSON = "application/json"


class APIFields:
    """JSON field names on the wire."""

    OBFUSCATED_PUBLIC_KEY = "obfuscatedPublicKey"
    ENCRYPTED_KEY = "encryptedKey"
    TOKEN = "token"  # noqa: S105  # nosec B105 - field name
    EXPIRY = "expiry"

    ENCRYPTED = "encrypted"
    DATA = "data"
    ALG = "alg"
    SUCCESS = "success"
    PAGINATION = "pagination"

    FILTERS = "filters"
    SEARCH = "search"
    PAGE = "page"
    PAGE_SIZE = "pageSize"
