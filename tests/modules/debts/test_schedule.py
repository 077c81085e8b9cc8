"""Tests for the component schedule generator."""

from datetime import date
from decimal import Decimal

import pytest
from pydantic import ValidationError as PydanticValidationError

from src.modules.debts.models import ComponentType
from src.modules.debts.schedule import ComponentScheduleGenerator, build_terms, term_due_date
from src.modules.debts.schemas import EnrollmentParams


def _generator() -> ComponentScheduleGenerator:
    return ComponentScheduleGenerator(
        tuition_share_percentage=Decimal("0.15"),
        living_stipend_monthly_amount=Decimal("3000.00"),
        living_stipend_months_per_semester=5,
        medical_yearly_amount=Decimal("1000.00"),
    )


class TestTerms:
    def test_terms_alternate_fall_and_spring(self):
        terms = build_terms(2024, 4)
        assert [t.semester for t in terms] == [
            "2024-FALL",
            "2024-SPRING",
            "2025-FALL",
            "2025-SPRING",
        ]
        assert [t.academic_year for t in terms] == [
            "2024/2025",
            "2024/2025",
            "2025/2026",
            "2025/2026",
        ]

    def test_due_dates(self):
        """Fall terms are due mid October, spring terms mid March of the term's year."""
        fall, spring = build_terms(2024, 2)
        assert term_due_date(fall) == date(2024, 10, 15)
        assert term_due_date(spring) == date(2024, 3, 15)


class TestComponentScheduleGenerator:
    """Tests for ComponentScheduleGenerator."""

    def test_per_term_amounts(self):
        amounts = _generator().per_term_amounts(
            EnrollmentParams(semesters=2, start_year=2024, tuition_base_annual=Decimal("20000"))
        )
        assert amounts[ComponentType.LIVING_STIPEND] == Decimal("15000.00")
        assert amounts[ComponentType.TUITION] == Decimal("1500.00")
        assert amounts[ComponentType.MEDICAL] == Decimal("500.00")

    def test_generate_three_components_per_term(self):
        drafts = _generator().generate(
            42,
            EnrollmentParams(semesters=2, start_year=2024, tuition_base_annual=Decimal("20000")),
        )

        assert len(drafts) == 6
        assert {d.student_id for d in drafts} == {42}
        first_term = [d for d in drafts if d.semester == "2024-FALL"]
        assert [d.component_type for d in first_term] == [
            ComponentType.LIVING_STIPEND,
            ComponentType.TUITION,
            ComponentType.MEDICAL,
        ]
        assert all(d.due_date == date(2024, 10, 15) for d in first_term)
        assert first_term[0].description == "Living stipend (food & accommodation)"
        assert first_term[1].description == "Tuition cost sharing (15%)"

    def test_declined_stipend_has_no_living_components(self):
        drafts = _generator().generate(
            1,
            EnrollmentParams(
                semesters=3,
                start_year=2024,
                tuition_base_annual=Decimal("20000"),
                living_stipend_choice=False,
            ),
        )
        assert len(drafts) == 6
        assert ComponentType.LIVING_STIPEND not in {d.component_type for d in drafts}

    def test_zero_tuition_base_skips_tuition(self):
        drafts = _generator().generate(1, EnrollmentParams(semesters=1, start_year=2024))
        assert [d.component_type for d in drafts] == [
            ComponentType.LIVING_STIPEND,
            ComponentType.MEDICAL,
        ]

    def test_amounts_are_rounded(self):
        generator = ComponentScheduleGenerator(
            tuition_share_percentage=Decimal("0.15"),
            living_stipend_monthly_amount=Decimal("3000.00"),
            living_stipend_months_per_semester=5,
            medical_yearly_amount=Decimal("1000.01"),
        )
        amounts = generator.per_term_amounts(
            EnrollmentParams(semesters=1, start_year=2024, tuition_base_annual=Decimal("12345.67"))
        )
        assert amounts[ComponentType.TUITION] == Decimal("925.93")
        assert amounts[ComponentType.MEDICAL] == Decimal("500.01")

    def test_invalid_semesters_rejected(self):
        with pytest.raises(PydanticValidationError):
            EnrollmentParams(semesters=0, start_year=2024)

    def test_rates_default_to_settings(self):
        generator = ComponentScheduleGenerator()
        assert generator.tuition_share_percentage == Decimal("0.15")
        assert generator.living_stipend_months_per_semester == 5
