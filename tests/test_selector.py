"""
Unit tests for label selector parsing and matching.
"""

import pytest

from machinehealth.errors import InvalidSelectorError
from machinehealth.models import LabelSelector, LabelSelectorRequirement, Operator


def expression(key, operator, values=None):
    return LabelSelectorRequirement(key=key, operator=operator, values=list(values or []))


class TestLabelSelectorMatching:
    """Test cases for selector evaluation."""

    def test_match_labels(self):
        selector = LabelSelector(match_labels={"foo": "bar"})
        assert selector.matches({"foo": "bar", "extra": "x"})
        assert not selector.matches({"foo": "baz"})
        assert not selector.matches({})

    def test_empty_selector_matches_nothing(self):
        assert not LabelSelector().matches({"foo": "bar"})
        assert not LabelSelector().matches({})

    @pytest.mark.parametrize("operator, values, labels, expected", [
        ("In", ["a", "b"], {"k": "a"}, True),
        ("In", ["a", "b"], {"k": "c"}, False),
        ("In", ["a"], {}, False),
        ("NotIn", ["a"], {"k": "b"}, True),
        ("NotIn", ["a"], {"k": "a"}, False),
        ("NotIn", ["a"], {}, True),
        ("Exists", [], {"k": ""}, True),
        ("Exists", [], {}, False),
        ("DoesNotExist", [], {}, True),
        ("DoesNotExist", [], {"k": "a"}, False),
    ])
    def test_match_expressions(self, operator, values, labels, expected):
        selector = LabelSelector(match_expressions=[expression("k", operator, values)])
        assert selector.matches(labels) is expected

    def test_labels_and_expressions_are_anded(self):
        selector = LabelSelector(
            match_labels={"foo": "bar"},
            match_expressions=[expression("role", "NotIn", ["master"])],
        )
        assert selector.matches({"foo": "bar", "role": "worker"})
        assert not selector.matches({"foo": "bar", "role": "master"})

    def test_none_labels(self):
        selector = LabelSelector(match_expressions=[expression("k", "DoesNotExist")])
        assert selector.matches(None)


class TestLabelSelectorValidation:
    """Test cases for malformed selectors."""

    @pytest.mark.parametrize("expr", [
        expression("k", "Equals", ["a"]),
        expression("k", "In", []),
        expression("k", "Exists", ["a"]),
        expression("", "Exists"),
        expression("bad key", "Exists"),
        expression("k", "In", ["not valid!"]),
        expression("Bad_Prefix/k", "Exists"),
    ])
    def test_invalid_expressions(self, expr):
        selector = LabelSelector(match_expressions=[expr])
        with pytest.raises(InvalidSelectorError):
            selector.requirements()
        with pytest.raises(InvalidSelectorError):
            selector.matches({"k": "a"})

    def test_invalid_match_label_value(self):
        with pytest.raises(InvalidSelectorError):
            LabelSelector(match_labels={"foo": "-bar"}).requirements()

    def test_prefixed_key_is_valid(self):
        selector = LabelSelector(match_labels={"machine.openshift.io/cluster-api-machine-role": "worker"})
        requirements = selector.requirements()
        assert requirements[0].operator is Operator.IN


class TestLabelSelectorSerialization:

    def test_from_dict(self):
        selector = LabelSelector.from_dict({
            "matchLabels": {"foo": "bar"},
            "matchExpressions": [{"key": "role", "operator": "In", "values": ["a", "b"]}],
        })
        assert selector.match_labels == {"foo": "bar"}
        assert selector.match_expressions[0].values == ["a", "b"]
        assert LabelSelector.from_dict(None).is_empty()

    def test_to_selector_string(self):
        selector = LabelSelector(
            match_labels={"foo": "bar"},
            match_expressions=[
                expression("zone", "NotIn", ["b", "a"]),
                expression("arch", "Exists"),
                expression("gpu", "DoesNotExist"),
                expression("tier", "In", ["x", "y"]),
            ],
        )
        assert selector.to_selector_string() == "arch,foo=bar,!gpu,tier in (x,y),zone notin (a,b)"

    def test_to_dict_round_trip(self):
        data = {"matchLabels": {"foo": "bar"}, "matchExpressions": [{"key": "k", "operator": "Exists", "values": []}]}
        assert LabelSelector.from_dict(data).to_dict() == data
