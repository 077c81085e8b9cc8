"""Derives the per-term debt components of a student from enrollment parameters."""

from datetime import date
from decimal import Decimal

from src.core.config import settings
from src.core.exceptions import ValidationError
from src.modules.debts.models import ComponentType
from src.modules.debts.schemas import ComponentDraft, EnrollmentParams, Term
from src.shared.utils.money import round_money

FALL = "FALL"
SPRING = "SPRING"

# Due on the 15th: October for fall terms, March for spring terms
DUE_DAY = 15
FALL_DUE_MONTH = 10
SPRING_DUE_MONTH = 3


def build_terms(start_year: int, semesters: int) -> list[Term]:
    """
    Sequential FALL/SPRING terms starting with the fall of ``start_year``.

    The year advances after each spring term, so 2024-FALL and 2024-SPRING
    both belong to academic year 2024/2025.
    """
    terms: list[Term] = []
    year = start_year
    is_fall = True
    for _ in range(semesters):
        label = FALL if is_fall else SPRING
        terms.append(
            Term(
                semester=f"{year}-{label}",
                academic_year=f"{year}/{year + 1}",
                start_year=year,
                is_fall=is_fall,
            )
        )
        if not is_fall:
            year += 1
        is_fall = not is_fall
    return terms


def term_due_date(term: Term) -> date:
    month = FALL_DUE_MONTH if term.is_fall else SPRING_DUE_MONTH
    return date(term.start_year, month, DUE_DAY)


class ComponentScheduleGenerator:
    """
    Computes tuition, living stipend and medical components per term.

    Rates default to the configured cost-sharing figures and can be overridden
    for tests or what-if calculations.
    """

    def __init__(
        self,
        tuition_share_percentage: Decimal | None = None,
        living_stipend_monthly_amount: Decimal | None = None,
        living_stipend_months_per_semester: int | None = None,
        medical_yearly_amount: Decimal | None = None,
    ):
        self.tuition_share_percentage = (
            tuition_share_percentage
            if tuition_share_percentage is not None
            else settings.tuition_share_percentage
        )
        self.living_stipend_monthly_amount = (
            living_stipend_monthly_amount
            if living_stipend_monthly_amount is not None
            else settings.living_stipend_monthly_amount
        )
        self.living_stipend_months_per_semester = (
            living_stipend_months_per_semester
            if living_stipend_months_per_semester is not None
            else settings.living_stipend_months_per_semester
        )
        self.medical_yearly_amount = (
            medical_yearly_amount
            if medical_yearly_amount is not None
            else settings.medical_yearly_amount
        )

    def per_term_amounts(self, params: EnrollmentParams) -> dict[ComponentType, Decimal]:
        """Amount owed per term for each component type."""
        tuition = round_money(
            Decimal(params.tuition_base_annual) * self.tuition_share_percentage / 2
        )
        living = (
            round_money(self.living_stipend_monthly_amount * self.living_stipend_months_per_semester)
            if params.living_stipend_choice
            else Decimal("0.00")
        )
        medical = round_money(self.medical_yearly_amount / 2)
        # Insertion order is the order components are emitted per term
        return {
            ComponentType.LIVING_STIPEND: living,
            ComponentType.TUITION: tuition,
            ComponentType.MEDICAL: medical,
        }

    def describe(self, component_type: ComponentType) -> str:
        if component_type == ComponentType.LIVING_STIPEND:
            return "Living stipend (food & accommodation)"
        if component_type == ComponentType.TUITION:
            percent = (self.tuition_share_percentage * 100).normalize()
            return f"Tuition cost sharing ({percent:f}%)"
        if component_type == ComponentType.MEDICAL:
            return "Medical cost sharing"
        return "Other fees"

    def generate(self, student_id: int, params: EnrollmentParams) -> list[ComponentDraft]:
        """
        Components owed by a student over ``params.semesters`` terms.

        Components whose amount is not positive are left out entirely, so a
        student who declined the stipend gets no LIVING_STIPEND rows.
        """
        if params.semesters < 1:
            raise ValidationError("Semesters must be a positive number", field="semesters")
        if params.tuition_base_annual < 0:
            raise ValidationError(
                "Tuition base amount cannot be negative", field="tuition_base_annual"
            )

        amounts = self.per_term_amounts(params)
        drafts: list[ComponentDraft] = []
        for term in build_terms(params.start_year, params.semesters):
            due_date = term_due_date(term)
            for component_type, amount in amounts.items():
                if amount <= 0:
                    continue
                drafts.append(
                    ComponentDraft(
                        student_id=student_id,
                        semester=term.semester,
                        academic_year=term.academic_year,
                        component_type=component_type,
                        amount=amount,
                        description=self.describe(component_type),
                        due_date=due_date,
                    )
                )
        return drafts
