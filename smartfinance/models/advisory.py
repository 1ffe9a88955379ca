"""
Advisory Models

Shapes returned by the advisory client. Whatever the endpoint answers,
the caller only ever receives one of these fully-formed values.
"""

from pydantic import BaseModel, ConfigDict, Field


class TradedInstrument(BaseModel):
    """One entry in the most-traded list."""
    model_config = ConfigDict(
        str_strip_whitespace=True,
        coerce_numbers_to_str=True,
    )

    name: str = Field(..., min_length=1)
    volume: str = Field(..., description="Traded volume as reported, e.g. '52,301 lots'")
    change: str = Field(..., description="Price change as reported, e.g. '+1.8%'")


class MarketSource(BaseModel):
    """A citation reported by the endpoint."""

    title: str = ""
    uri: str = Field(..., min_length=1)


class MarketSnapshot(BaseModel):
    """
    Structured market commentary.

    Accepts both snake_case and the camelCase keys the model is asked for.
    """
    model_config = ConfigDict(populate_by_name=True)

    top_traded: list[TradedInstrument] = Field(..., alias="topTraded")
    hot_sectors: list[str] = Field(..., alias="hotSectors")
    summary: str = Field(..., min_length=1)
    sources: list[MarketSource] = Field(default_factory=list)
