from typing import ClassVar, Tuple

from pydantic import BaseModel, model_validator


class PartialUpdate(BaseModel):
    """
    Body of a PUT: omitted fields keep their stored value.
    An explicit null is accepted only for the fields in `nullable_fields`,
    the ones whose column can be cleared.
    """

    nullable_fields: ClassVar[Tuple[str, ...]] = ()

    @model_validator(mode="before")
    @classmethod
    def _reject_nulls(cls, data):
        if isinstance(data, dict):
            nulls = sorted(
                name for name, value in data.items()
                if value is None and name in cls.model_fields and name not in cls.nullable_fields
            )
            if nulls:
                raise ValueError(f"These fields cannot be null: {', '.join(nulls)}")
        return data
