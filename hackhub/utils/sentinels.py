# utils/sentinels.py
from typing import Any, Self, ClassVar, Optional
from pydantic_core import core_schema
from pydantic.json_schema import JsonSchemaValue

class Missing:
	"""Marks an update field that the caller did not supply."""

	_instance: ClassVar[Optional["Missing"]] = None

	def __new__(cls) -> Self:
		if cls._instance is None:
			cls._instance = super().__new__(cls)
		return cls._instance

	def __repr__(self) -> str:
		return "MISSING"

	def __bool__(self) -> bool:
		return False

	def __copy__(self) -> Self:
		return self

	def __deepcopy__(self, _memo: dict) -> Self:
		return self

	@classmethod
	def __get_pydantic_core_schema__(cls, _source, _handler) -> core_schema.CoreSchema:
		def validate(v):
			if v is cls._instance:
				return v
			raise ValueError('value is not the Missing sentinel')
		return core_schema.no_info_plain_validator_function(
			validate,
			serialization=core_schema.plain_serializer_function_ser_schema(repr),
		)

	@classmethod
	def __get_pydantic_json_schema__(cls, _core_schema: core_schema.CoreSchema, _handler) -> JsonSchemaValue:
		# internal placeholder, never sent by clients
		return {
			"title": "Missing sentinel (internal)",
			"type": "string",
			"const": "MISSING",
			"readOnly": True,
			"writeOnly": True,
			"x-internal": True,
		}


MISSING = Missing()


def provided(value: Any) -> bool:
	return value is not MISSING
