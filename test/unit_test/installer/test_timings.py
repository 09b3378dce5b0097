"""Unit tests for pod readiness timings."""

import pytest

from installer.timings import (
    INCOMPLETE,
    UNAVAILABLE,
    UNREALISTIC,
    format_duration,
    group_for,
    pod_readiness,
    render_report,
)


def pod(name, start=None, ready=None):
    status = {}
    if start:
        status["startTime"] = start
    if ready:
        status["conditions"] = [
            {"type": "PodScheduled", "status": "True", "lastTransitionTime": start},
            {"type": "Ready", "status": "True", "lastTransitionTime": ready},
        ]
    return {"metadata": {"name": name}, "status": status}


@pytest.mark.parametrize(
    "seconds,expected",
    [(0, "00:00:00"), (59, "00:00:59"), (3661, "01:01:01"), (86400, "24:00:00")],
)
def test_format_duration(seconds, expected):
    assert format_duration(seconds) == expected


@pytest.mark.parametrize(
    "name,group",
    [
        ("opengovernance-postgresql-0", "postgres"),
        ("opensearch-master-0", "opensearch"),
        ("opengovernance-vault-0", "vault"),
        ("keda-operator-abc", "keda"),
        ("og-demo-importer-1", "demo"),
        ("opengovernance-nats-0", "nats"),
        ("auth-service-1", "auth"),
        ("nginx-proxy-1", None),
    ],
)
def test_group_for(name, group):
    assert group_for(name) == group


def test_pod_readiness_durations():
    timings = pod_readiness(
        {
            "items": [
                pod("ok", "2024-05-01T10:00:00Z", "2024-05-01T10:02:30Z"),
                pod("missing", "2024-05-01T10:00:00Z"),
                pod("backwards", "2024-05-01T10:00:00Z", "2024-05-01T09:00:00Z"),
                pod("too-long", "2024-05-01T10:00:00Z", "2024-05-03T10:00:00Z"),
            ]
        }
    )
    assert [t.duration for t in timings] == ["00:02:30", UNAVAILABLE, UNREALISTIC, UNREALISTIC]


def test_render_report_groups_first():
    rows = render_report(
        {
            "items": [
                pod("nginx-proxy-1", "2024-05-01T10:00:00Z", "2024-05-01T10:00:10Z"),
                pod("keda-operator-a", "2024-05-01T10:00:00Z", "2024-05-01T10:01:00Z"),
                pod("keda-metrics-b", "2024-05-01T10:00:30Z", "2024-05-01T10:03:00Z"),
                pod("auth-service-1", "2024-05-01T10:00:00Z"),
            ]
        }
    )
    assert rows == [
        ("keda[2]", "00:03:00"),
        ("auth[1]", INCOMPLETE),
        ("nginx-proxy-1", "00:00:10"),
    ]
