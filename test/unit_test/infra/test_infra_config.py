import pytest
from pydantic import ValidationError

from infra.config import _parse_bool, _parse_json, _parse_list, compute_subnets
from infra.models import EksConfigResolved, NodeGroupResolved, VpcConfigResolved

ZONES = ["us-east-1a", "us-east-1b", "us-east-1c"]


def test_subnets_for_default_vpc():
    private, public = compute_subnets("10.0.0.0/16", ZONES, "og")

    assert [s.cidr_block for s in private] == ["10.0.0.0/20", "10.0.16.0/20", "10.0.32.0/20"]
    assert [s.cidr_block for s in public] == ["10.0.240.0/24", "10.0.241.0/24", "10.0.242.0/24"]
    assert [s.availability_zone for s in public] == ZONES
    assert private[0].name == "og-private-us-east-1a"
    assert public[2].name == "og-public-us-east-1c"


def test_vpc_too_small_for_zones():
    with pytest.raises(ValueError, match="too small for 3 availability zones"):
        compute_subnets("10.0.0.0/19", ZONES, "og")


@pytest.mark.parametrize(
    "value,default,expected",
    [
        (None, ["a"], ["a"]),
        ("a, b,,c ", None, ["a", "b", "c"]),
        ("", ["a"], []),
    ],
)
def test_parse_list(value, default, expected):
    assert _parse_list(value, default) == expected


@pytest.mark.parametrize(
    "value,expected",
    [(None, True), ("true", True), ("YES", True), ("1", True), ("false", False), ("off", False)],
)
def test_parse_bool(value, expected):
    assert _parse_bool(value, default=True) is expected


def test_parse_json_falls_back_on_garbage():
    assert _parse_json('{"team": "ops"}', {}) == {"team": "ops"}
    assert _parse_json("{not json", {"x": 1}) == {"x": 1}
    assert _parse_json(None) is None


def test_vpc_must_be_at_least_slash_18():
    private, public = compute_subnets("10.0.0.0/16", ZONES, "og")
    with pytest.raises(ValidationError, match="/18 or larger"):
        VpcConfigResolved(cidr_block="10.0.0.0/20", public_subnets=public, private_subnets=private)


def test_node_group_scaling_bounds():
    with pytest.raises(ValidationError, match="greater than or equal to min_size"):
        NodeGroupResolved(min_size=3, max_size=2)
    assert NodeGroupResolved().desired_size == 3


def test_service_cidr_prefix():
    with pytest.raises(ValidationError, match="Invalid service CIDR"):
        EksConfigResolved(service_ipv4_cidr="172.20.0.0/28")
    assert EksConfigResolved().node_groups[0].instance_types == ["m6in.xlarge"]
