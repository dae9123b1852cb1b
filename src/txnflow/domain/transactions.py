"""Transaction snapshot as seen by the template engine."""

from __future__ import annotations

from datetime import date

from pydantic import BaseModel, Field

from txnflow.domain.types import Anchor


class Transaction(BaseModel):
    """A transaction's identity, classification, and anchor dates.

    Anchor dates may be None before they are known. The type tag is
    always present. Besides contract and closing, the contingency
    deadlines (inspection, appraisal, financing) can anchor a rule.
    """

    model_config = {"frozen": True}

    id: str = Field(min_length=1)
    transaction_type: str = Field(min_length=1)
    service_tier: str | None = None
    contract_date: date | None = None
    closing_date: date | None = None
    inspection_date: date | None = None
    appraisal_date: date | None = None
    financing_date: date | None = None

    def anchor_date(self, anchor: Anchor) -> date | None:
        """Return the date behind *anchor*, or None if not yet known."""
        dates = {
            Anchor.CONTRACT: self.contract_date,
            Anchor.CLOSING: self.closing_date,
            Anchor.INSPECTION: self.inspection_date,
            Anchor.APPRAISAL: self.appraisal_date,
            Anchor.FINANCING: self.financing_date,
        }
        return dates[anchor]
