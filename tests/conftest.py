"""Shared workbook fixtures."""

import pandas as pd
import pytest


CHANNEL_COLUMNS = [
    "groups", "page", "name", "device", "join", "profile",
    "source_ip_a", "multicast_a", "vlan_a", "source_ip_b", "multicast_b", "vlan_b",
]


def make_channel_sheet(*rows):
    """Channel sheet DataFrame from dicts, unspecified cells left blank."""
    return pd.DataFrame([{c: row.get(c) for c in CHANNEL_COLUMNS} for row in rows], columns=CHANNEL_COLUMNS)


@pytest.fixture
def channel_sheet():
    return make_channel_sheet


@pytest.fixture
def unicast():
    return pd.DataFrame(
        [
            {"FRIENDLY_NAME": "P1", "VLAN": "DFF-A", "INTERFACE": "eth0", "IP_PRFX_GW": "10.0.0.1/24/10.0.0.254"},
            {"FRIENDLY_NAME": "P1", "VLAN": "dff-b", "INTERFACE": "eth1", "IP_PRFX_GW": "10.1.0.1/24/10.1.0.254"},
            {"FRIENDLY_NAME": "P1", "VLAN": "dtv", "INTERFACE": "mgmt0", "IP_PRFX_GW": "192.168.1.10/24/192.168.1.1"},
            {"FRIENDLY_NAME": "P2", "VLAN": "dff-a", "INTERFACE": "eth2", "IP_PRFX_GW": "10.0.0.2/24/10.0.0.254"},
        ]
    )


@pytest.fixture
def profiles():
    return pd.DataFrame(
        [
            {"profile": "std", "content": None, "audiodepth": None, "channelorder": None,
             "audiosr": None, "port_no_a": None, "port_no_b": None, "Notes": None},
            {"profile": "hd", "content": "video", "audiodepth": "16", "channelorder": "5.1",
             "audiosr": "44100", "port_no_a": "5000", "port_no_b": "5002", "Notes": "main"},
        ]
    )


@pytest.fixture
def sheets(unicast, profiles):
    return {
        "unicast": unicast,
        "profiles": profiles,
        "validation": pd.DataFrame({"anything": ["x"]}),
        "studio": make_channel_sheet(
            {"name": "Cam1", "groups": "news", "profile": "hd",
             "source_ip_a": "10.0.0.5", "multicast_a": "239.1.1.1",
             "source_ip_b": "10.1.0.5", "multicast_b": "239.2.1.1"},
            {"name": "Cam2", "source_ip_a": "10.0.0.6", "multicast_a": "239.1.1.2"},
            {"name": "Blank"},
        ),
    }
