"""Tests for the contact field ordering."""

import pytest

from offerbot.contact import ContactField, next_missing_field, phone_from_sender
from offerbot.models.session import ContactExtraction, ContactInfo, RequestKind


class TestNextMissingField:
    def test_empty_starts_with_name(self):
        assert next_missing_field(ContactInfo(), RequestKind.PURCHASE) == ContactField.NAME

    def test_either_name_part_satisfies_name(self):
        assert next_missing_field(ContactInfo(surname="Bahanack"), RequestKind.PURCHASE) == ContactField.CURRENT_CITY
        assert next_missing_field(ContactInfo(name="Georges"), RequestKind.PURCHASE) == ContactField.CURRENT_CITY

    def test_purchase_complete_after_city(self):
        contact = ContactInfo(name="Georges", surname="Bahanack", current_city="Douala")
        assert next_missing_field(contact, RequestKind.PURCHASE) is None

    def test_unknown_kind_behaves_as_purchase(self):
        contact = ContactInfo(name="Georges", current_city="Douala")
        assert next_missing_field(contact, None) is None

    def test_rental_with_names_asks_city_first(self):
        contact = ContactInfo(name="Georges", surname="Bahanack")
        assert next_missing_field(contact, RequestKind.RENTAL) == ContactField.CURRENT_CITY

    def test_rental_later_fields_do_not_skip_city(self):
        contact = ContactInfo(
            name="Georges", surname="Bahanack",
            email="g@example.com", number_of_days=3, start_date="01/09/2025",
        )
        assert next_missing_field(contact, RequestKind.RENTAL) == ContactField.CURRENT_CITY

    @pytest.mark.parametrize("known,expected", [
        ({"current_city": "Douala"}, ContactField.EMAIL),
        ({"current_city": "Douala", "number_of_days": 3}, ContactField.EMAIL),
        ({"current_city": "Douala", "email": "g@example.com"}, ContactField.NUMBER_OF_DAYS),
        ({"current_city": "Douala", "email": "g@example.com", "number_of_days": 3}, ContactField.START_DATE),
    ])
    def test_rental_order(self, known, expected):
        contact = ContactInfo(name="Georges", **known)
        assert next_missing_field(contact, RequestKind.RENTAL) == expected

    def test_rental_complete(self):
        contact = ContactInfo(
            name="Georges", current_city="Douala",
            email="g@example.com", number_of_days=3, start_date="01/09/2025",
        )
        assert next_missing_field(contact, RequestKind.RENTAL) is None


class TestContactMerge:
    def test_null_fields_never_clear(self):
        contact = ContactInfo(name="Georges", current_city="Douala")
        changed = contact.merge(ContactExtraction(current_city=None, email="g@example.com"))
        assert changed == ["email"]
        assert contact.name == "Georges"
        assert contact.current_city == "Douala"

    def test_new_value_overwrites(self):
        contact = ContactInfo(current_city="Douala")
        assert contact.merge(ContactExtraction(current_city="Yaoundé")) == ["current_city"]
        assert contact.current_city == "Yaoundé"


class TestPhoneFromSender:
    def test_strips_suffix(self):
        assert phone_from_sender("237690000000@c.us") == "237690000000"

    def test_plain_id_unchanged(self):
        assert phone_from_sender("237690000000") == "237690000000"
