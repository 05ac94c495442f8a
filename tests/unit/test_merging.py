"""Unit tests for identity record merging and dataset assembly"""

import pytest
from conftest import make_income
from smartloan_core.domain.merging import build_dataset, merge_identities, merge_identity
from smartloan_core.domain.models import IdentityRecord


def _front(**overrides) -> IdentityRecord:
    fields = dict(full_name="JOHN OTIENO KAMAU", id_number="12345678", date_of_birth="15.03.1985", confidence=0.8)
    fields.update(overrides)
    return IdentityRecord(**fields).validate(0.7)


def test_merge_fills_blank_fields_from_secondary():
    """Test primary keeps its values and borrows only what it lacks"""
    front = _front()
    back = IdentityRecord(expiry_date="01.01.2030", place_of_birth="NAIROBI", confidence=0.1)

    merged = merge_identity(front, back, 0.7)

    assert merged.full_name == "JOHN OTIENO KAMAU"
    assert merged.expiry_date == "01.01.2030"
    assert merged.place_of_birth == "NAIROBI"
    # Secondary only carried the missing-field confidence
    assert merged.confidence == 0.8
    assert merged.is_valid is True


def test_merge_higher_confidence_record_is_primary():
    """Test conflicting values come from the more confident observation"""
    weak = _front(full_name="J0HN OTIEN0", confidence=0.5)
    strong = _front(confidence=0.9)

    merged = merge_identity(weak, strong, 0.7)

    assert merged.full_name == "JOHN OTIENO KAMAU"
    assert merged.confidence == pytest.approx(0.7)  # mean of 0.5 and 0.9


def test_merge_tie_keeps_first_as_primary():
    """Test equal confidence keeps the first record's values"""
    first = _front(full_name="JOHN KAMAU")
    second = _front(full_name="JOHN OTIENO KAMAU")

    assert merge_identity(first, second).full_name == "JOHN KAMAU"


def test_merge_with_blank_record_is_identity():
    """Test merging with an entirely blank record returns the other record unchanged"""
    record = _front()
    blank = IdentityRecord()

    assert merge_identity(record, blank, 0.7) == record
    assert merge_identity(blank, record, 0.7) == record


def test_merge_revalidates_result():
    """Test validity is recomputed after fields are combined"""
    name_only = IdentityRecord(full_name="JOHN OTIENO KAMAU", confidence=0.8).validate(0.7)
    number_only = IdentityRecord(id_number="12345678", confidence=0.8).validate(0.7)
    assert not name_only.is_valid and not number_only.is_valid

    merged = merge_identity(name_only, number_only, 0.7)

    assert merged.is_valid is True
    assert merged.confidence == 0.8


def test_merge_identities_handles_any_count():
    """Test folding zero, one and several observations"""
    assert merge_identities([]).is_valid is False
    assert merge_identities([_front()], 0.7).full_name == "JOHN OTIENO KAMAU"

    back = IdentityRecord(place_of_birth="NAIROBI", confidence=0.1)
    assert merge_identities([_front(), back], 0.7).place_of_birth == "NAIROBI"


def test_build_dataset_keeps_income_capture_order(identity):
    """Test income records are listed, not merged, in the order captured"""
    records = [make_income("2024-02"), make_income("2023-12"), make_income("2024-01")]

    dataset = build_dataset(identity, records)

    assert [r.pay_period for r in dataset.income_records] == ["2024-02", "2023-12", "2024-01"]
    assert dataset.is_complete is True
    assert dataset.overall_confidence == pytest.approx(0.8)
