"""Cache key schema for ticketcache.

Keys are structured values, compared field by field:

    CacheKey(type_name="Widget", identifier=1)

For logs and external tooling a key renders to a delimited string:

    {prefix}:{type_b64}:{kind}{identifier_b64}

Where:
- prefix: "ticketcache"
- type_b64: Base64URL encoded type discriminator
- kind: "i" (int), "s" (str) or "*" (whole collection, no identifier)
- identifier_b64: Base64URL encoded identifier (empty for "*")

Both components are encoded so a ':' inside a type name or identifier can
never be confused with the delimiter.
"""

from __future__ import annotations

import base64
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, ClassVar, Final, TypeVar, Union

from ticketcache.errors import InvalidKeyError

Identifier = Union[str, int]

_B64URL_ALPHABET: Final[str] = "ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz0123456789-_"

C = TypeVar("C", bound=type)


def encode_b64url(value: str) -> str:
    """Encode to Base64URL without padding."""
    raw = value.encode("utf-8")
    encoded = base64.urlsafe_b64encode(raw).decode("ascii")
    return encoded.rstrip("=")


def decode_b64url(value: str) -> str:
    """Decode Base64URL without padding."""
    if any(ch not in _B64URL_ALPHABET for ch in value):
        raise InvalidKeyError("invalid base64url alphabet")
    padded = value + "=" * ((4 - len(value) % 4) % 4)
    try:
        return base64.urlsafe_b64decode(padded.encode("ascii")).decode("utf-8")
    except (ValueError, UnicodeDecodeError) as exc:
        raise InvalidKeyError("invalid base64url value") from exc


def type_name_of(type_or_name: Any) -> str:
    """Resolve a type discriminator.

    Accepts the discriminator string itself, or any class or instance that
    declares a ``cache_type`` attribute. Runtime class names are never used,
    so renaming a class cannot silently change its keys.
    """
    if isinstance(type_or_name, str):
        name = type_or_name
    else:
        name = getattr(type_or_name, "cache_type", None)
        if name is None:
            raise InvalidKeyError(f"{type_or_name!r} does not declare a cache_type discriminator")
    if not isinstance(name, str) or not name:
        raise InvalidKeyError(f"Invalid cache type discriminator: {name!r}")
    return name


def _check_identifier(identifier: Any) -> Identifier | None:
    # bool is an int subclass but True == 1 would collide with identifier 1
    if identifier is None:
        return None
    if isinstance(identifier, bool) or not isinstance(identifier, (str, int)):
        raise InvalidKeyError(f"Identifier must be str or int, got {type(identifier).__name__}")
    return identifier


@dataclass(frozen=True, slots=True)
class CacheKey:
    """Structured cache key: (type discriminator, identifier).

    ``identifier`` of ``None`` addresses the whole collection of a type.
    """

    type_name: str
    identifier: Identifier | None = None

    PREFIX: ClassVar[str] = "ticketcache"

    @classmethod
    def derive(cls, type_or_name: Any, identifier: Any = None) -> CacheKey:
        """Derive the key for ``(type, identifier)``."""
        return cls(type_name_of(type_or_name), _check_identifier(identifier))

    @classmethod
    def for_value(cls, value: Any) -> CacheKey:
        """Derive the key from a value's own ``cache_type`` and ``cache_id``.

        A value without an id cannot be stored: the ``None`` identifier is
        the whole-collection key of its type.
        """
        if not hasattr(value, "cache_id"):
            raise InvalidKeyError(f"{value!r} does not expose a cache_id")
        if value.cache_id is None:
            raise InvalidKeyError(f"{value!r} has no cache_id")
        return cls.derive(value, value.cache_id)

    def matches_type(self, type_or_name: Any) -> bool:
        """Exact match on the type discriminator."""
        return self.type_name == type_name_of(type_or_name)

    def render(self) -> str:
        """Render as a delimited string."""
        type_b64 = encode_b64url(self.type_name)
        if self.identifier is None:
            return f"{self.PREFIX}:{type_b64}:*"
        kind = "i" if isinstance(self.identifier, int) else "s"
        return f"{self.PREFIX}:{type_b64}:{kind}{encode_b64url(str(self.identifier))}"

    @classmethod
    def parse(cls, key: str) -> CacheKey | None:
        """Parse a rendered key back into a CacheKey.

        Returns None if the key doesn't match the expected format.
        """
        parts = key.split(":")
        if len(parts) != 3 or parts[0] != cls.PREFIX or not parts[1] or not parts[2]:
            return None

        try:
            type_name = decode_b64url(parts[1])
            kind, payload = parts[2][0], parts[2][1:]
            if kind == "*" and not payload:
                return cls(type_name)
            if kind == "s":
                return cls(type_name, decode_b64url(payload))
            if kind == "i":
                return cls(type_name, int(decode_b64url(payload)))
        except (InvalidKeyError, ValueError):
            return None
        return None

    def __str__(self) -> str:
        return self.render()


def cacheable(type_name: str, id_attr: str = "id") -> Callable[[C], C]:
    """Class decorator declaring a cache discriminator and identifier.

    Example:
        @cacheable("Widget")
        @dataclass
        class Widget:
            id: int
            name: str
    """
    type_name = type_name_of(type_name)

    def decorator(cls: C) -> C:
        cls.cache_type = type_name  # type: ignore[attr-defined]
        if not hasattr(cls, "cache_id"):
            cls.cache_id = property(lambda self: getattr(self, id_attr))  # type: ignore[attr-defined]
        return cls

    return decorator
