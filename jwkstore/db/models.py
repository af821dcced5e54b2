"""Database models for persisted key material."""

from sqlalchemy import Column, DateTime, Integer, String, Text
from sqlalchemy.sql import func

from jwkstore.db.database import Base

JWK_TABLE = "hydra_jwk"


class JWKRecord(Base):
    """One encrypted JSON Web Key belonging to a key set.

    The table itself is created by the migration registry; this mapping must
    match the shape after the last migration step.
    """

    __tablename__ = JWK_TABLE

    sid = Column(String(255), primary_key=True)
    kid = Column(String(255), primary_key=True)
    version = Column(Integer, nullable=False, default=0, server_default="0")
    keydata = Column(Text, nullable=False)
    created_at = Column(DateTime, server_default=func.now(), nullable=False)

    def __repr__(self) -> str:
        # keydata deliberately omitted
        return f"<JWKRecord sid={self.sid!r} kid={self.kid!r} version={self.version}>"
