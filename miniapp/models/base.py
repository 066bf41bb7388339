"""
Base data models
Shared model base class
"""

from pydantic import BaseModel, ConfigDict


class BaseEntity(BaseModel):
    """Base entity model, accepts both field names and wire aliases"""

    model_config = ConfigDict(populate_by_name=True, from_attributes=True)
