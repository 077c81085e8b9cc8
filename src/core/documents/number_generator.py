from datetime import datetime
from enum import StrEnum

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.documents.models import DocumentSequence


class DocumentPrefix(StrEnum):
    """Prefixes of the numbered ledger documents."""

    PAYMENT_REQUEST = "PRQ"
    PAYMENT = "PAY"
    CLEARANCE_LETTER = "CLR"


class DocumentNumberGenerator:
    """
    Generates sequential document numbers in format: PREFIX-YYYY-NNNNNN

    Examples:
        PRQ-2026-000001
        PAY-2026-000042
        CLR-2026-000007
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def generate(self, prefix: str | DocumentPrefix, year: int | None = None) -> str:
        """
        Generate next document number for given prefix and year.

        The sequence row is read with SELECT FOR UPDATE so two transactions
        never hand out the same number.
        """
        prefix = str(prefix)
        if year is None:
            year = datetime.now().year

        stmt = (
            select(DocumentSequence)
            .where(DocumentSequence.prefix == prefix, DocumentSequence.year == year)
            .with_for_update()
        )
        sequence = (await self.session.execute(stmt)).scalar_one_or_none()

        if sequence is None:
            sequence = DocumentSequence(prefix=prefix, year=year, last_number=0)
            self.session.add(sequence)
            await self.session.flush()

            # Re-fetch with lock
            sequence = (await self.session.execute(stmt)).scalar_one()

        sequence.last_number += 1
        await self.session.flush()

        return f"{prefix}-{year}-{sequence.last_number:06d}"
