from pydantic import BaseModel, Field


class TakePortResponse(BaseModel):
    key: str = Field(description="Key of the set the port was taken from.")
    port: int = Field(description="The allocated port.")


class GiveBackPortRequest(BaseModel):
    port: int = Field(description="A port previously taken from this set.")


class SetStatusResponse(BaseModel):
    key: str
    lower: int = Field(description="First port of the range.")
    upper: int = Field(description="One past the last port of the range.")
    available: int = Field(description="Number of ports that can still be taken.")
