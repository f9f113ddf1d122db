"""Tests for strict decoding of structured NLU replies."""

import pytest

from listings.schema import OfferType
from offerbot.models.session import Language
from offerbot.nlu.parsing import (
    decode_contact,
    decode_slots,
    extract_json_object,
    parse_amount,
    parse_day_count,
    parse_option_index,
    parse_yes_no,
)


class TestJsonObjectExtraction:
    def test_fenced_json(self):
        text = 'Voici:\n\n```json\n{"town": "Douala", "budget": 50000}\n```'
        assert extract_json_object(text) == {"town": "Douala", "budget": 50000}

    def test_bare_json(self):
        assert extract_json_object('{"town": "Douala"}') == {"town": "Douala"}

    def test_json_line_inside_prose(self):
        text = 'Sure.\n{"service": "villa"}\nHope this helps.'
        assert extract_json_object(text) == {"service": "villa"}

    def test_no_json(self):
        assert extract_json_object("Je ne sais pas.") is None

    def test_invalid_json(self):
        assert extract_json_object("```json\n{town: Douala}\n```") is None

    def test_array_is_not_an_object(self):
        assert extract_json_object("[1, 2]") is None


class TestAmounts:
    @pytest.mark.parametrize("value,expected", [
        (50000, 50000.0),
        ("50000", 50000.0),
        ("50 000 FCFA", 50000.0),
        ("50.000", 50000.0),
        ("75k", 75000.0),
        ("1.5M", 1500000.0),
        ("2,5 millions", 2500000.0),
    ])
    def test_parses(self, value, expected):
        assert parse_amount(value) == expected

    @pytest.mark.parametrize("value", [None, "null", "", "beaucoup", 0, -5, True])
    def test_rejects(self, value):
        assert parse_amount(value) is None

    def test_day_count(self):
        assert parse_day_count("3 jours") == 3
        assert parse_day_count(7) == 7
        assert parse_day_count("quelques") is None


class TestDecodeSlots:
    def test_full_extraction(self):
        reply = '{"service": "villa", "town": "Douala", "budget": 50000, "type": "property", "language": "fr"}'
        slots = decode_slots(reply)
        assert slots.service == "villa"
        assert slots.town == "Douala"
        assert slots.budget == 50000
        assert slots.offer_type == OfferType.PROPERTY
        assert slots.language == Language.FR

    def test_synonyms_normalized(self):
        slots = decode_slots('{"type": "immobilier", "language": "english"}')
        assert slots.offer_type == OfferType.PROPERTY
        assert slots.language == Language.EN

        assert decode_slots('{"type": "Véhicule"}').offer_type == OfferType.VEHICLE

    def test_null_strings_become_none(self):
        slots = decode_slots('{"service": "null", "town": "unknown", "budget": "N/A"}')
        assert slots.is_empty()

    def test_unknown_type_is_dropped_not_fatal(self):
        slots = decode_slots('{"town": "Douala", "type": "boat"}')
        assert slots.town == "Douala"
        assert slots.offer_type is None

    def test_prose_reply_is_null_extraction(self):
        assert decode_slots("I could not find anything.").is_empty()


class TestDecodeContact:
    def test_names_and_city(self):
        contact = decode_contact('{"first_name": "Georges", "last_name": "Bahanack", "current_city": "Douala"}')
        assert contact.name == "Georges"
        assert contact.surname == "Bahanack"
        assert contact.current_city == "Douala"

    def test_rental_fields(self):
        contact = decode_contact(
            '{"email": "Georges@Example.com", "number_of_days": "5 jours", "start_date": "12/08/2025"}'
        )
        assert contact.email == "georges@example.com"
        assert contact.number_of_days == 5
        assert contact.start_date == "12/08/2025"

    def test_invalid_email_dropped(self):
        assert decode_contact('{"email": "not an email"}').email is None

    def test_garbage_is_null_extraction(self):
        assert decode_contact("no json here").is_empty()


class TestClassificationReplies:
    @pytest.mark.parametrize("reply,expected", [
        ("yes", True),
        ("Oui.", True),
        ("No", False),
        ("non", False),
        ("maybe", None),
        ("", None),
    ])
    def test_yes_no(self, reply, expected):
        assert parse_yes_no(reply) is expected

    def test_option_number(self):
        assert parse_option_index("2", 3) == 1
        assert parse_option_index("Option 3.", 3) == 2

    def test_option_none(self):
        assert parse_option_index("none", 3) is None
        assert parse_option_index("Aucune", 3) is None

    def test_option_out_of_range(self):
        with pytest.raises(ValueError):
            parse_option_index("4", 3)

    def test_option_unparsable(self):
        with pytest.raises(ValueError):
            parse_option_index("the villa", 3)
