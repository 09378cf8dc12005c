"""Base model shared by graph node and edge records."""

from pydantic import BaseModel, ConfigDict


class GraphBaseModel(BaseModel):
    """Base model for all graph records with common configuration."""

    model_config = ConfigDict(  # pyright: ignore[reportUnannotatedClassAttribute]
        from_attributes=True,
    )
