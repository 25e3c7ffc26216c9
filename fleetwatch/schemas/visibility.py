"""
Pydantic schemas for resource visibility
"""
from typing import List
from pydantic import BaseModel, Field, field_validator
from fleetwatch.models.geofence import Visibility


class VisibilityScope(BaseModel):
    visibility: Visibility = Visibility.ALL
    # Only meaningful for ASSIGNED; an empty list is valid and differs from OWNER_ONLY
    assigned_user_ids: List[str] = Field(default_factory=list)

    @field_validator("assigned_user_ids")
    @classmethod
    def deduplicate(cls, v: List[str]) -> List[str]:
        return list(dict.fromkeys(v))

    def normalized(self) -> "VisibilityScope":
        """Drop user ids that have no meaning for the selected visibility"""
        if self.visibility != Visibility.ASSIGNED:
            return VisibilityScope(visibility=self.visibility)
        return self
