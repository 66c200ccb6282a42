"""Bay inventory models and the default capacity policy."""

from enum import Enum
from typing import Mapping, Optional, Union

from pydantic import BaseModel, Field, computed_field, model_validator

from washbay.errors import InvalidRequest


class ServiceCategory(str, Enum):
    WASH = "wash"
    DETAILING = "detailing"
    OTHER = "other"


BAY_PREFIXES: dict[ServiceCategory, str] = {
    ServiceCategory.WASH: "bay-w",
    ServiceCategory.DETAILING: "bay-d",
    ServiceCategory.OTHER: "bay-o",
}

BAY_LABELS: dict[ServiceCategory, str] = {
    ServiceCategory.WASH: "Wash Bay",
    ServiceCategory.DETAILING: "Detail Bay",
    ServiceCategory.OTHER: "Bay",
}


class Bay(BaseModel):
    """A physical service position at a partner location."""
    bay_id: str
    display_name: str
    category: ServiceCategory
    is_active: bool = True


class CapacityPlan(BaseModel):
    """
    A partner's bay inventory.

    Bay order is significant: the allocator always hands out the first
    free bay in the order declared here.
    """
    partner_id: str
    bays: list[Bay] = Field(default_factory=list)

    @model_validator(mode="after")
    def _check_unique_ids(self) -> "CapacityPlan":
        seen: set[str] = set()
        for bay in self.bays:
            if bay.bay_id in seen:
                raise ValueError(f"Duplicate bay id: {bay.bay_id}")
            seen.add(bay.bay_id)
        return self

    @computed_field  # type: ignore[prop-decorator]
    @property
    def capacity_by_category(self) -> dict[str, int]:
        counts = {category.value: 0 for category in ServiceCategory}
        for bay in self.bays:
            if bay.is_active:
                counts[bay.category.value] += 1
        return counts

    def bays_for(self, category: ServiceCategory) -> list[Bay]:
        """Active bays of a category, in declared order."""
        return [b for b in self.bays if b.category == category and b.is_active]

    def get_bay(self, bay_id: str) -> Optional[Bay]:
        for bay in self.bays:
            if bay.bay_id == bay_id:
                return bay
        return None

    @classmethod
    def from_counts(
        cls, partner_id: str, counts: Mapping[Union[ServiceCategory, str], int]
    ) -> "CapacityPlan":
        """Build a plan with ``n`` generated bays per category."""
        bays = []
        for category in ServiceCategory:
            count = counts.get(category, counts.get(category.value, 0))
            if count < 0:
                raise InvalidRequest(f"Bay count for {category.value} must be >= 0, got {count}")
            for i in range(1, count + 1):
                bays.append(
                    Bay(
                        bay_id=f"{BAY_PREFIXES[category]}{i}",
                        display_name=f"{BAY_LABELS[category]} {i}",
                        category=category,
                    )
                )
        return cls(partner_id=partner_id, bays=bays)


def default_capacity(partner_id: str) -> CapacityPlan:
    """Capacity used when a partner has not configured bays: 3 wash, 1 detailing."""
    return CapacityPlan.from_counts(
        partner_id,
        {ServiceCategory.WASH: 3, ServiceCategory.DETAILING: 1, ServiceCategory.OTHER: 0},
    )
