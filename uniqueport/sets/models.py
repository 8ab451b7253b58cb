from pydantic import BaseModel, ConfigDict, Field

from uniqueport.sets.bitvector import BitVector


class PortRange(BaseModel):
    """The half-open interval ``[lower, lower + length)`` of allocatable elements."""

    model_config = ConfigDict(frozen=True)

    lower: int
    length: int = Field(gt=0)

    @property
    def upper(self) -> int:
        return self.lower + self.length

    def contains(self, element: int) -> bool:
        return self.lower <= element < self.upper

    def index_of(self, element: int) -> int:
        return element - self.lower

    def element_at(self, index: int) -> int:
        return self.lower + index


class SetItem(BaseModel):
    """A persisted set: bit ``i`` of ``members`` is set when ``lower + i`` is available."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    key: str
    members: BitVector

    def __repr__(self) -> str:
        return f"SetItem(key={self.key!r}, available={self.members.count()})"
