"""Tests for the unicast and profiles sheet builders."""

import pandas as pd
import pytest

from xls2btech import (
    CHANNEL_SCHEMA,
    PROFILES_SCHEMA,
    MissingTableError,
    load_table,
    process_profiles_sheet,
    process_unicast_sheet,
    read_channel_rows,
)


def test_load_table_adds_missing_columns_and_defaults():
    dataframe = pd.DataFrame([{"name": " Cam1 ", "page": None}, {"name": None, "page": None}])
    rows = load_table(dataframe, CHANNEL_SCHEMA)
    assert len(rows) == 1
    assert rows[0]["name"] == "Cam1"
    assert rows[0]["page"] == "1"
    assert rows[0]["vlan_a"] == "dff-a"
    assert rows[0]["vlan_b"] == "dff-b"
    assert rows[0]["source_ip_a"] == ""


def test_registry_device_order_and_lowercase_vlan(sheets):
    registry = process_unicast_sheet(sheets)
    assert registry.devices == ("P1", "P2")
    assert ("P1", "dff-a") in registry.interfaces
    assert registry.lookup("P1", "DFF-A").interface == "eth0"
    assert registry.lookup("P2", "dff-b") is None


def test_registry_first_row_wins():
    unicast = pd.DataFrame(
        [
            {"FRIENDLY_NAME": "P1", "VLAN": "dff-a", "INTERFACE": "eth0", "IP_PRFX_GW": "10.0.0.1/24/10.0.0.254"},
            {"FRIENDLY_NAME": "P1", "VLAN": "Dff-A", "INTERFACE": "eth9", "IP_PRFX_GW": "10.9.9.9/24/10.9.9.254"},
        ]
    )
    registry = process_unicast_sheet({"unicast": unicast})
    entry = registry.lookup("P1", "dff-a")
    assert entry.interface == "eth0"
    assert entry.ip_prefix_gw == "10.0.0.1/24/10.0.0.254"


def test_registry_lists_devices_without_interface():
    unicast = pd.DataFrame(
        [
            {"FRIENDLY_NAME": "P1", "VLAN": "dff-a", "INTERFACE": None, "IP_PRFX_GW": None},
            {"FRIENDLY_NAME": None, "VLAN": "dff-a", "INTERFACE": "eth0", "IP_PRFX_GW": None},
        ]
    )
    registry = process_unicast_sheet({"unicast": unicast})
    assert registry.devices == ("P1",)
    assert len(registry.interfaces) == 0


def test_missing_unicast_sheet():
    with pytest.raises(MissingTableError, match="not found"):
        process_unicast_sheet({})


def test_empty_unicast_sheet():
    empty = pd.DataFrame(columns=["FRIENDLY_NAME", "VLAN", "INTERFACE", "IP_PRFX_GW"])
    with pytest.raises(MissingTableError, match="empty"):
        process_unicast_sheet({"unicast": empty})


def test_profile_defaults(sheets):
    profiles = process_profiles_sheet(sheets)
    std = profiles.lookup("std")
    assert std.audiodepth == "24"
    assert std.channelorder == "ST"
    assert std.audiosr == "48000"
    assert std.port_no_a == "5004"
    assert std.port_no_b == "5004"
    assert std.content == ""


def test_profile_last_row_wins():
    dataframe = pd.DataFrame(
        [
            {"profile": "std", "audiodepth": "16"},
            {"profile": None, "audiodepth": "32"},
            {"profile": "std", "audiodepth": "20"},
        ]
    )
    profiles = process_profiles_sheet({"profiles": dataframe})
    assert len(profiles) == 1
    assert profiles.lookup("std").audiodepth == "20"


def test_unknown_profile_uses_defaults(sheets):
    profiles = process_profiles_sheet(sheets)
    unknown = profiles.lookup("nope")
    assert (unknown.audiodepth, unknown.channelorder, unknown.audiosr) == ("24", "ST", "48000")
    assert (unknown.port_no_a, unknown.port_no_b) == ("5004", "5004")


def test_missing_profiles_sheet():
    with pytest.raises(MissingTableError, match="profiles"):
        process_profiles_sheet({"unicast": pd.DataFrame()})


def test_empty_profiles_sheet():
    empty = pd.DataFrame(columns=list(PROFILES_SCHEMA))
    with pytest.raises(MissingTableError, match="empty"):
        process_profiles_sheet({"profiles": empty})


def test_read_channel_rows_join_flag():
    dataframe = pd.DataFrame([{"name": "a", "join": " No "}, {"name": "b", "join": "yes"}, {"name": "c"}])
    rows = read_channel_rows({"s": dataframe}, "s")
    assert [r.join for r in rows] == [False, True, True]
    assert read_channel_rows({}, "s") is None
