"""
Instrument specification parsing: type, tuning and frequency vocabulary
"""
import pytest

from services.instrument_specs import (
    InstrumentType, parse_instrument_type, normalize_tuning, normalize_frequency,
    extract_tuning_from_title, extract_specifications, freeze_specs_from
)

from fakes import line_item


class TestParseInstrumentType:
    @pytest.mark.parametrize("text,expected", [
        ("Innato Dm4 432Hz", InstrumentType.INNATO),
        ("NATEY Am3", InstrumentType.NATEY),
        ("Double Flute Cm4", InstrumentType.DOUBLE),
        ("ZEN flute Large", InstrumentType.ZEN),
        ("Gift cards", InstrumentType.CARDS),
        ("Ocarina", InstrumentType.UNKNOWN),
        ("", InstrumentType.UNKNOWN),
        (None, InstrumentType.UNKNOWN),
    ])
    def test_keywords(self, text, expected):
        assert parse_instrument_type(text) == expected


class TestNormalizeTuning:
    def test_minor_suffix_is_stripped(self):
        assert normalize_tuning("Dm4") == ("D4", True)

    def test_accidentals_survive(self):
        assert normalize_tuning("F#m3") == ("F#3", True)
        assert normalize_tuning("Bbm3") == ("Bb3", True)

    def test_major_tuning_untouched(self):
        assert normalize_tuning("C#4") == ("C#4", False)

    def test_missing_tuning(self):
        assert normalize_tuning(None) == (None, False)


class TestNormalizeFrequency:
    def test_known_frequencies(self):
        assert normalize_frequency("432Hz") == "432"
        assert normalize_frequency(440) == "440"
        assert normalize_frequency("440 Hz tuning") == "440"

    def test_unknown_frequency(self):
        assert normalize_frequency("415") is None
        assert normalize_frequency(None) is None


class TestExtractSpecifications:
    def test_title_variant_and_properties(self):
        item = line_item(
            "ext-7",
            title="Innato Em4 (440Hz)",
            variant_title="Blue / Em4 / Engraved",
            properties={"Engraving text": "For Sam"},
        )
        specs = extract_specifications(item)

        assert specs["model"] == "INNATO"
        assert specs["fluteType"] == "INNATO"
        assert specs["tuning"] == "Em4"
        assert specs["frequency"] == "440"
        assert specs["color"] == "Blue"
        assert specs["key"] == "Em4"
        assert specs["engraving"] == "Yes"
        assert specs["Engraving text"] == "For Sam"
        assert specs["line_item_id"] == "ext-7"

    def test_frequency_property_overrides_title_default(self):
        specs = extract_specifications(line_item(1, title="Natey Am3", properties={"Tuning": "432 Hz"}))
        assert specs["frequency"] == "432"
        assert specs["tuningFrequency"] == "432 Hz"

    def test_zen_size_as_tuning(self):
        assert extract_tuning_from_title("ZEN flute Medium") == "M"


class TestFreezeSpecsFrom:
    def test_minor_tuning_is_stored_without_suffix(self):
        fields = freeze_specs_from({"type": "INNATO", "tuning": "Dm4", "frequency": "432"})
        assert fields == {"type": "INNATO", "tuning": "D4", "minor": True, "frequency": "432", "color": ""}

    def test_defaults(self):
        fields = freeze_specs_from({})
        assert fields["type"] == "UNKNOWN"
        assert fields["tuning"] == "UNKNOWN"
        assert fields["frequency"] == "432"
        assert fields["color"] == ""

    def test_unrecognised_frequency_is_dropped(self):
        assert freeze_specs_from({"type": "NATEY", "frequency": "415Hz"})["frequency"] is None

    def test_flute_type_preferred_over_full_title(self):
        fields = freeze_specs_from({"type": "Some gift bundle", "fluteType": "NATEY"})
        assert fields["type"] == "NATEY"
