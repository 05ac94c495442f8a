"""Unit tests for field extraction from inference answers"""

import pytest
from conftest import TODAY
from smartloan_core.domain.extraction import (
    FOUND_CONFIDENCE,
    MISSING_CONFIDENCE,
    DocumentKind,
    FieldExtractor,
    extract_amount,
    extract_date,
    extract_deductions,
    extract_field,
    extract_id_number,
    normalize_pay_period,
    parse_amount,
)
from smartloan_core.domain.models import IdentityRecord, IncomeRecord


@pytest.fixture
def extractor() -> FieldExtractor:
    return FieldExtractor(min_confidence=0.7, clock=lambda: TODAY)


def test_extract_identity_from_markdown_answer(extractor: FieldExtractor, id_front_text: str):
    """Test bold markdown labels are parsed and confidence reflects name + ID number"""
    record = extractor.extract_identity(id_front_text)

    assert record.full_name == "JOHN OTIENO KAMAU"
    assert record.id_number == "12345678"
    assert record.date_of_birth == "15.03.1985"
    assert record.confidence == FOUND_CONFIDENCE
    assert record.is_valid is True


def test_extract_identity_back_side(extractor: FieldExtractor, id_back_text: str):
    """Test back of card yields expiry and place of birth but no identifying fields"""
    record = extractor.extract_identity(id_back_text)

    assert record.expiry_date == "01.01.2030"
    assert record.place_of_birth == "NAIROBI"
    assert record.full_name == ""
    assert record.confidence == MISSING_CONFIDENCE
    assert record.is_valid is False


def test_extract_income_with_sections(extractor: FieldExtractor, payslip_text: str):
    """Test a full payslip answer with allowance and deduction sections"""
    record = extractor.extract_income(payslip_text)

    assert record.employee_name == "John Otieno Kamau"
    assert record.employer_name == "ACME LTD"
    assert record.gross_salary == 60000.0
    assert record.net_salary == 50000.0
    assert record.pay_period == "2024-01"
    assert record.deductions == {"PAYE": 12000.0, "NSSF": 200.0, "Co-operative Loan": 4800.0}
    assert record.allowances == {"Housing Allowance": 5000.0, "Commuter Allowance": 2000.0}
    assert record.confidence == FOUND_CONFIDENCE
    assert record.is_valid is True
    assert record.is_net_salary_consistent()


def test_extract_income_plain_labels_and_keyword_fallback(extractor: FieldExtractor):
    """Test loose labels, Month-Year normalisation and known-keyword deduction scan"""
    text = (
        "Employee: Jane Wanjiru\n"
        "Employer: Beta Co\n"
        "Month: March-2024\n"
        "Gross Pay 45000\n"
        "Net Pay 38000\n"
        "SACCO Loan 2,500\n"
        "House Allowance 3,000\n"
    )

    record = extractor.extract_income(text)

    assert record.employee_name == "Jane Wanjiru"
    assert record.employer_name == "Beta Co"
    assert record.pay_period == "2024-03"
    assert record.gross_salary == 45000.0
    assert record.net_salary == 38000.0
    assert record.deductions == {"Sacco Loan": 2500.0}
    assert record.allowances == {"House Allowance": 3000.0}


def test_keyword_fallback_counts_overlapping_names_once():
    """Test "Premier Kenya Loan" is not also reported as "Kenya Loan" """
    deductions = extract_deductions("Premier Kenya Loan: 3,000\nUnion 500")

    assert deductions == {"Premier Kenya Loan": 3000.0, "Union": 500.0}


def test_extract_income_unreadable_answer(extractor: FieldExtractor):
    """Test an answer with no recognisable fields degrades to an empty, low-confidence record"""
    record = extractor.extract_income("The image is too blurry to read.")

    assert record.gross_salary == 0.0
    assert record.net_salary == 0.0
    assert record.deductions == {}
    assert record.confidence == MISSING_CONFIDENCE
    assert record.is_valid is False


@pytest.mark.parametrize("text", ["", "   ", "\n\n**\n", "12 34 :: ??"])
def test_extraction_never_raises(extractor: FieldExtractor, text: str):
    """Test degenerate input is parsed without exceptions"""
    assert isinstance(extractor.extract(text, DocumentKind.IDENTITY_FRONT), IdentityRecord)
    assert isinstance(extractor.extract(text, DocumentKind.INCOME), IncomeRecord)


def test_extract_dispatches_on_document_kind(extractor: FieldExtractor, payslip_text: str):
    """Test income kind yields an IncomeRecord and identity kinds an IdentityRecord"""
    assert isinstance(extractor.extract(payslip_text, DocumentKind.INCOME), IncomeRecord)
    assert isinstance(extractor.extract(payslip_text, DocumentKind.IDENTITY_BACK), IdentityRecord)


def test_parse_amount_strips_separators_and_currency():
    """Test thousands separators and currency markers are ignored"""
    assert parse_amount("KSh 1,234.50") == 1234.5
    assert parse_amount("50000") == 50000.0
    assert parse_amount("n/a") == 0.0
    assert parse_amount("") == 0.0


def test_extract_amount_prefers_specific_pattern():
    """Test "<keyword> salary" wins over a looser keyword hit"""
    text = "Total deductions 9,000\nGross Salary: KES 80,000"

    assert extract_amount(text, ("gross", "total")) == 80000.0


def test_extract_amount_uses_fallback():
    """Test a bare "Total:" line is accepted when no salary label exists"""
    assert extract_amount("Total: 30,000", ("gross", "total")) == 30000.0


def test_extract_field_fallback_caps_value():
    """Test loose "keyword value" fallback and its length cap"""
    value = extract_field("Name " + "A" * 80, ("name",))

    assert value == "A" * 50


def test_extract_id_number_without_label():
    """Test a bare eight-digit run is taken as the ID number"""
    assert extract_id_number("Serial 123 and 87654321 printed") == "87654321"
    assert extract_id_number("No number here") == ""


@pytest.mark.parametrize(
    "text,expected",
    [
        ("Date of Birth: 15.03.1985", "15.03.1985"),
        ("DOB: 1985-03-15", "1985-03-15"),
        ("Born 15/03/1985", "15/03/1985"),
        ("Date of birth unknown", ""),
    ],
)
def test_extract_date_formats(text: str, expected: str):
    """Test dotted, slashed and ISO dates after a keyword"""
    assert extract_date(text, ("date of birth", "birth", "born", "dob")) == expected


@pytest.mark.parametrize(
    "value,expected",
    [
        ("January 2024", "2024-01"),
        ("march-2025", "2025-03"),
        ("December, 2023", "2023-12"),
        ("2024-02", "2024-02"),
        ("Q1 2024", "Q1 2024"),
        ("", ""),
    ],
)
def test_normalize_pay_period(value: str, expected: str):
    """Test month names become YYYY-MM and anything else passes through"""
    assert normalize_pay_period(value) == expected


def test_extract_income_numbered_headings_from_prompt(extractor: FieldExtractor):
    """Test section headings that echo the income prompt ("All deductions") are recognised"""
    text = (
        "Here is the information from the payslip:\n\n"
        "1. **Employee Name:** John Otieno Kamau\n"
        "2. **Employer:** ACME LTD\n"
        "3. **Gross Salary:** KSh 60,000\n"
        "4. **Net Salary:** KSh 55,000\n"
        "5. **Pay Period:** January 2024\n"
        "6. **All deductions:**\n"
        "   - PAYE: KSh 6,000\n"
        "   - NSSF: KSh 2,000\n"
        "7. **All allowances (with names and amounts):**\n"
        "   - House Allowance: KSh 3,000\n"
    )

    record = extractor.extract_income(text)

    assert record.deductions == {"PAYE": 6000.0, "NSSF": 2000.0}
    assert record.allowances == {"House Allowance": 3000.0}
    assert record.is_valid is True
    assert record.is_net_salary_consistent()


def test_total_deductions_line_is_not_a_section_header():
    """Test a "Total deductions" amount line does not open a deductions section"""
    assert extract_deductions("Total deductions: 9,000\nUnion 500") == {"Union": 500.0}


def test_extract_income_oversized_pay_period(extractor: FieldExtractor):
    """Test a period year beyond the calendar range leaves the record invalid instead of raising"""
    text = "Employee: Jane Wanjiru\nEmployer: Beta Co\nPay Period: 99999999999-01\nGross Pay 45000\nNet Pay 38000\n"

    record = extractor.extract_income(text)

    assert record.pay_period == "99999999999-01"
    assert record.is_valid is False
