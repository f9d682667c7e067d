# -*- coding: utf-8 -*-
"""
Facility deletion with detach of dependents.

Tasks and meters only reference a facility (nullable FK), so deleting the
facility clears those references instead of deleting the rows. Order matters:
the FK has no ON DELETE, so the facility row can only go once nothing points
at it.

    1. count dependents per kind
    2. clear facility_id for every kind with count > 0
    3. delete the facility
    4. check that nothing references the id any more

All four steps run in one store transaction. A failure at any step rolls the
whole thing back; a failed check at step 4 raises IntegrityError and is
never retried.
"""

import logging
from dataclasses import dataclass, field

from errors import IntegrityError, NotFoundError
from .models import DEPENDENT_MODELS

logger = logging.getLogger(__name__)

DEPENDENT_KINDS = tuple(DEPENDENT_MODELS)


@dataclass
class DetachReport:
    facility_id: int
    detached: dict = field(default_factory=dict)

    @property
    def total(self) -> int:
        return sum(self.detached.values())

    def to_dict(self) -> dict:
        return {"facility_id": self.facility_id, "detached": dict(self.detached), "total": self.total}


class FacilityIntegrityManager:

    def __init__(self, store):
        self.store = store

    def _require_facility(self, facility_id):
        facility = self.store.load_facility(facility_id)
        if facility is None:
            raise NotFoundError("facility", facility_id)
        return facility

    def dependent_counts(self, facility_id) -> dict:
        self._require_facility(facility_id)
        return {kind: self.store.count_dependents(facility_id, kind) for kind in DEPENDENT_KINDS}

    def delete_facility(self, facility_id) -> DetachReport:
        report = DetachReport(facility_id)
        with self.store.transaction():
            self._require_facility(facility_id)

            counts = {kind: self.store.count_dependents(facility_id, kind) for kind in DEPENDENT_KINDS}
            for kind, count in counts.items():
                report.detached[kind] = self.store.clear_facility_ref(facility_id, kind) if count else 0

            if self.store.delete_facility(facility_id) != 1:
                raise NotFoundError("facility", facility_id)

            remaining = {kind: self.store.count_dependents(facility_id, kind) for kind in DEPENDENT_KINDS}
            if any(remaining.values()):
                logger.error("facility %s deleted but still referenced: %s", facility_id, remaining)
                raise IntegrityError(facility_id, remaining)

        logger.info("facility %s deleted, detached %s", facility_id, report.detached)
        return report

    def reassign(self, kind: str, dependent_id, facility_id):
        """Point a task/meter at another facility, or detach it with ``facility_id=None``."""
        with self.store.transaction():
            dependent = self.store.load_dependent(kind, dependent_id)
            if dependent is None:
                raise NotFoundError(kind, dependent_id)
            if facility_id is not None:
                self._require_facility(facility_id)
            dependent.facility_id = facility_id
        return dependent
