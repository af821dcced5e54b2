"""JSON Web Key models and the codec the key store serializes them with."""

from typing import Any, List, Optional, Protocol

from pydantic import BaseModel, ConfigDict, Field


class JSONWebKey(BaseModel):
    """A single JSON Web Key (RFC 7517).

    Only the members the store relies on are declared; every other member
    (``n``, ``e``, ``d``, ``crv``, ``x5c``, ...) is kept as an extra field so a
    serialize/deserialize round-trip is lossless.
    """

    model_config = ConfigDict(extra="allow")

    kid: str = Field(..., description="Key identifier, unique within a set")
    kty: str = Field(..., description="Key type (RSA, EC, oct, OKP)")
    use: Optional[str] = Field(None, description="Intended use (sig, enc)")
    alg: Optional[str] = Field(None, description="Algorithm the key is used with")


class JSONWebKeySet(BaseModel):
    """A JWK Set: the unit every read operation returns."""

    keys: List[JSONWebKey] = Field(default_factory=list)

    def key(self, kid: str) -> List[JSONWebKey]:
        """Return every key whose ``kid`` matches."""
        return [k for k in self.keys if k.kid == kid]

    def __len__(self) -> int:
        return len(self.keys)


class KeyCodec(Protocol):
    """Serialization capability for key objects."""

    def key_id(self, key: Any) -> str:
        ...

    def dumps(self, key: Any) -> bytes:
        ...

    def loads(self, data: bytes) -> Any:
        ...

    def bundle(self, keys: List[Any]) -> Any:
        ...


class JSONWebKeyCodec:
    """Default codec: JSON via pydantic."""

    def key_id(self, key: JSONWebKey) -> str:
        return key.kid

    def dumps(self, key: JSONWebKey) -> bytes:
        return key.model_dump_json(exclude_none=True).encode("utf-8")

    def loads(self, data: bytes) -> JSONWebKey:
        return JSONWebKey.model_validate_json(data)

    def bundle(self, keys: List[JSONWebKey]) -> JSONWebKeySet:
        return JSONWebKeySet(keys=keys)
