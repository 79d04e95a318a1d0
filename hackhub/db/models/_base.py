# db/models/_base.py
import enum
from typing import Type

from sqlalchemy import JSON, Enum as SAEnum
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    pass


# JSONB on PostgreSQL, plain JSON elsewhere (sqlite in tests)
JSONType = JSON().with_variant(JSONB(), "postgresql")


def enum_type(enum_cls: Type[enum.Enum], name: str) -> SAEnum:
    """Store enum values (not member names) so raw SQL filters read naturally."""
    return SAEnum(enum_cls, name=name, values_callable=lambda members: [m.value for m in members])
