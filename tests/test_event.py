"""
Tests for the event model and wire translation.
"""
import pytest

from velohub.protocol.event import Event, Kinds, decode_p, encode_p, get_tag
from velohub.schemas.validator import ValidationError

from conftest import make_event, participants


class TestFromWire:

    def test_capitalized_result_shape(self):
        event = Event.from_wire({
            "Id": "x1", "From": "alice", "Kind": "1", "Content": "hi",
            "Timestamp": 42, "Tags": [["topic", "news"]],
        })
        assert event.id == "x1"
        assert event.from_ == "alice"
        assert event.kind == Kinds.NOTE
        assert event.content == "hi"
        assert event.timestamp == 42
        assert event.tags == (("topic", "news"),)

    def test_lowercase_publish_shape(self):
        event = Event.from_wire({"from": "bob", "kind": "7", "content": "+",
                                 "e": "x1", "p": ["alice"]})
        assert event.from_ == "bob"
        assert event.p == participants("alice")
        assert event.participants == ["alice"]

    def test_well_known_fields_from_tags(self):
        event = Event.from_wire({"From": "bob", "Tags": [
            {"name": "Kind", "value": "3"},
            {"name": "p", "value": participants("hub-1")},
        ]})
        assert event.kind == Kinds.FOLLOW
        assert event.participants == ["hub-1"]

    def test_top_level_wins_over_tags(self):
        event = Event.from_wire({"From": "bob", "Kind": "1", "Tags": [["Kind", "7"]]})
        assert event.kind == "1"

    def test_string_timestamp(self):
        assert Event.from_wire({"From": "a", "Kind": "1", "Timestamp": "1700"}).timestamp == 1700
        assert Event.from_wire({"From": "a", "Kind": "1", "Timestamp": "soon"}).timestamp == 0

    @pytest.mark.parametrize("data", [
        {"Kind": "1"},
        {"From": "alice"},
        {"From": "", "Kind": "1"},
        {"From": "alice", "Kind": "1", "Content": 5},
    ])
    def test_rejects_malformed(self, data):
        with pytest.raises(ValidationError):
            Event.from_wire(data)

    def test_coerce_skips_validation(self):
        event = Event.coerce({"Kind": "1"})
        assert event.from_ is None
        assert Event.coerce(event) is event


class TestFields:

    def test_field_aliases(self, sample_events):
        reaction = sample_events[2]
        assert reaction.field("From") == "alice"
        assert reaction.field("from") == "alice"
        assert reaction.field("e") == "b"
        assert reaction.field("Timestamp") == 20

    def test_field_falls_back_to_tag(self, sample_events):
        assert sample_events[0].field("category") == "defi"
        assert sample_events[0].field("missing") is None

    def test_toggle_key_ignores_content(self):
        first = make_event("1", author="a", kind="7", content="+", e="x", p="[]")
        second = make_event("2", author="a", kind="7", content="-", e="x", p="[]")
        assert first.toggle_key == second.toggle_key

    def test_restamp_moves_inbound_id_to_original_id(self):
        event = make_event("inbound", author="owner").restamp("hub", "new", 99)
        assert (event.id, event.from_, event.original_id, event.timestamp) == \
            ("new", "hub", "inbound", 99)

    def test_stamped_keeps_author(self):
        event = make_event("remote", author="bob").stamped("remote", 7)
        assert event.from_ == "bob"
        assert event.original_id is None


class TestWire:

    def test_to_wire_omits_absent_optionals(self):
        wire = make_event("a", author="alice", timestamp=3).to_wire()
        assert wire == {"Id": "a", "From": "alice", "Kind": "1", "Tags": [], "Timestamp": 3}

    def test_to_wire_includes_references(self, sample_events):
        wire = sample_events[2].to_wire()
        assert wire["e"] == "b"
        assert wire["p"] == participants("bob")
        assert wire["Content"] == "+"

    def test_wire_shape_reads_back(self, sample_events):
        for event in sample_events:
            assert Event.from_wire(event.to_wire()) == event

    def test_to_dict_uses_canonical_keys(self, sample_events):
        data = sample_events[3].to_dict()
        assert data["from"] == "carol"
        assert data["original_id"] is None


class TestHelpers:

    def test_get_tag(self):
        tags = [("a", "1"), ("b", "2"), ("a", "3")]
        assert get_tag(tags, "a") == "1"
        assert get_tag(tags, "z") is None
        assert get_tag(None, "a") is None

    @pytest.mark.parametrize("raw", [None, "", "not json", '{"a": 1}', "5"])
    def test_decode_p_tolerates_bad_input(self, raw):
        assert decode_p(raw) == []

    def test_encode_p(self):
        assert decode_p(encode_p(["x", "y"])) == ["x", "y"]
