"""
mongocache — Cache Capabilities

Static description of what a cache backend supports. Consumers (namespacing,
serialization) read it to decide how to prepare keys and values.
"""

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any


@dataclass(frozen=True)
class Capabilities:
    """
    Capabilities of a cache backend.

    Attributes:
        supported_datatypes: Python type name -> True (stored natively),
            False (unsupported) or the name of the type it is converted to
        supported_metadata: Metadata fields returned by get_metadata()
        min_ttl: Smallest TTL in seconds
        max_ttl: Largest TTL in seconds (0 = unbounded)
        static_ttl: Whether the TTL is fixed at write time
        ttl_precision: TTL granularity in seconds
        use_request_time: Whether expiry is measured from request start
        expired_read: Whether expired items may still be returned
        max_key_length: Longest accepted key (0 = unbounded)
        namespace_is_prefix: Whether namespaces are key prefixes rather than
            separate backend scopes
    """

    supported_datatypes: MappingProxyType[str, bool | str] = field(default_factory=lambda: MappingProxyType({}))
    supported_metadata: tuple[str, ...] = ()
    min_ttl: int = 0
    max_ttl: int = 0
    static_ttl: bool = True
    ttl_precision: int = 1
    use_request_time: bool = False
    expired_read: bool = False
    max_key_length: int = 0
    namespace_is_prefix: bool = True

    def supports(self, value: Any) -> bool:
        """Whether a value's type can be stored (nested containers not inspected)."""
        support = self.supported_datatypes.get(type(value).__name__, False)
        return support is not False

    def to_dict(self) -> dict[str, Any]:
        return {
            "supported_datatypes": dict(self.supported_datatypes),
            "supported_metadata": list(self.supported_metadata),
            "min_ttl": self.min_ttl,
            "max_ttl": self.max_ttl,
            "static_ttl": self.static_ttl,
            "ttl_precision": self.ttl_precision,
            "use_request_time": self.use_request_time,
            "expired_read": self.expired_read,
            "max_key_length": self.max_key_length,
            "namespace_is_prefix": self.namespace_is_prefix,
        }
