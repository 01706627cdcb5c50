#!/usr/bin/env python3

"""
  xls2btech.py

  Converts a spreadsheet of multicast channel definitions to Bridgetech
  probe XML configuration files, one per probe and channel sheet, or pushes
  the configuration of a single sheet straight to a probe.

  The workbook must contain a 'unicast' sheet (probe interfaces per VLAN),
  a 'profiles' sheet (audio profiles) and one or more channel sheets.
  A 'validation' sheet, if present, is ignored.

  [Usage]
  1. Write all files: python3 xls2btech.py -x <input_file> [-d <output_folder>]
  2. Push one sheet:  python3 xls2btech.py -x <input_file> -p <probe> -s <sheet> [-u | -r]
"""

__license__ = "MIT"
__version__ = "0.4"
__status__ = "Dev"

import argparse
import logging
import os
import re
import sys
import xml.etree.ElementTree as ET
from dataclasses import dataclass, field
from types import MappingProxyType

import pandas as pd
import requests
from pyfiglet import Figlet
from tabulate import tabulate


# ----------------------------------------------------------------------
# --- CONFIGURATION ---
# ----------------------------------------------------------------------

DEFAULT_OUTPUT_DIR = "btechxml"

UNICAST_SHEET = "unicast"
PROFILES_SHEET = "profiles"
VALIDATION_SHEET = "validation"
RESERVED_SHEETS = frozenset([UNICAST_SHEET, PROFILES_SHEET, VALIDATION_SHEET])

# VLAN whose interface address is used to reach the probe itself
MANAGEMENT_VLAN = "dtv"
DEFAULT_VLAN_A = "dff-a"
DEFAULT_VLAN_B = "dff-b"

PUSH_PATH = "/probe/core/importExport/data.xml"
PUSH_MODES = ("update", "delete")

# Characters not allowed in output file and folder names
SANITIZE_CHARS = r'[ \\/:*?"<>|]'

# Column schemas: column name -> value used when the cell is blank
UNICAST_SCHEMA = {
    "FRIENDLY_NAME": "",
    "VLAN": "",
    "INTERFACE": "",
    "IP_PRFX_GW": "",
}

PROFILES_SCHEMA = {
    "profile": "",
    "content": "",
    "audiodepth": "24",
    "channelorder": "ST",
    "audiosr": "48000",
    "port_no_a": "5004",
    "port_no_b": "5004",
    "Notes": "",
}

CHANNEL_SCHEMA = {
    "groups": "",
    "page": "1",
    "name": "",
    "device": "",
    "join": "",
    "profile": "",
    "source_ip_a": "",
    "multicast_a": "",
    "vlan_a": DEFAULT_VLAN_A,
    "source_ip_b": "",
    "multicast_b": "",
    "vlan_b": DEFAULT_VLAN_B,
}


# ----------------------------------------------------------------------
# --- ERRORS ---
# ----------------------------------------------------------------------

class Xls2BtechError(Exception):
    """Base class for conversion errors."""


class MissingTableError(Xls2BtechError):
    """A required sheet is missing from the workbook or has no rows."""


class TransportError(Xls2BtechError):
    """Pushing a configuration to a probe failed."""


# ----------------------------------------------------------------------
# --- DATA MODEL ---
# ----------------------------------------------------------------------

@dataclass(frozen=True)
class InterfaceEntry:
    interface: str
    ip_prefix_gw: str


@dataclass(frozen=True)
class InterfaceRegistry:
    """Probe names in first-seen order and their interfaces keyed by (probe, vlan)."""

    devices: tuple
    interfaces: MappingProxyType

    def lookup(self, device, vlan):
        return self.interfaces.get((device, vlan.lower()))


@dataclass(frozen=True)
class Profile:
    name: str
    content: str = ""
    audiodepth: str = PROFILES_SCHEMA["audiodepth"]
    channelorder: str = PROFILES_SCHEMA["channelorder"]
    audiosr: str = PROFILES_SCHEMA["audiosr"]
    port_no_a: str = PROFILES_SCHEMA["port_no_a"]
    port_no_b: str = PROFILES_SCHEMA["port_no_b"]
    notes: str = ""

    @classmethod
    def from_row(cls, row):
        return cls(
            name=row["profile"],
            content=row["content"],
            audiodepth=row["audiodepth"],
            channelorder=row["channelorder"],
            audiosr=row["audiosr"],
            port_no_a=row["port_no_a"],
            port_no_b=row["port_no_b"],
            notes=row["Notes"],
        )


@dataclass(frozen=True)
class ProfileTable:
    profiles: MappingProxyType

    def lookup(self, name):
        """Return the named profile, or an all-defaults profile when unknown."""
        return self.profiles.get(name) or Profile(name=name)

    def __len__(self):
        return len(self.profiles)


@dataclass(frozen=True)
class ChannelRow:
    name: str = ""
    groups: str = ""
    page: str = CHANNEL_SCHEMA["page"]
    device: str = ""
    profile: str = ""
    source_ip_a: str = ""
    multicast_a: str = ""
    vlan_a: str = DEFAULT_VLAN_A
    source_ip_b: str = ""
    multicast_b: str = ""
    vlan_b: str = DEFAULT_VLAN_B
    join: bool = True

    @classmethod
    def from_row(cls, row):
        return cls(
            name=row["name"],
            groups=row["groups"],
            page=row["page"],
            device=row["device"],
            profile=row["profile"],
            source_ip_a=row["source_ip_a"],
            multicast_a=row["multicast_a"],
            vlan_a=row["vlan_a"],
            source_ip_b=row["source_ip_b"],
            multicast_b=row["multicast_b"],
            vlan_b=row["vlan_b"],
            join=row["join"].lower() != "no",
        )


@dataclass(frozen=True)
class MulticastChannelRecord:
    name: str
    addr: str
    port: str
    ssm_addr: str
    join_iface_name: str
    groups: str
    page: str
    join: bool
    audiodepth: str
    audiosr: str
    channel_order: str
    session_id: str = "0"
    etr_engine: str = "1"
    extract_thumbs: bool = True
    enable_fec: bool = False
    enable_rtcp: bool = True

    def attributes(self):
        """Attributes of the mcastChannel element, in probe export order."""
        values = {
            "name": self.name,
            "addr": self.addr,
            "port": self.port,
            "sessionId": self.session_id,
            "groups": self.groups,
            "audiodepth": self.audiodepth,
            "audiosr": self.audiosr,
            "channelOrder": self.channel_order,
            "joinIfaceName": self.join_iface_name,
            "ssmAddr": self.ssm_addr,
            "join": self.join,
            "page": self.page,
            "etrEngine": self.etr_engine,
            "extractThumbs": self.extract_thumbs,
            "enableFec": self.enable_fec,
            "enableRtcp": self.enable_rtcp,
        }
        return {k: (str(v).lower() if isinstance(v, bool) else v) for k, v in values.items()}


@dataclass
class SheetResult:
    sheet_name: str
    device: str
    records: list = field(default_factory=list)
    skipped: int = 0


# --- UTILITY FUNCTIONS ---

def show_title():
    """Show the program title"""
    f1 = Figlet(font='standard')
    print(f1.renderText('xls2btech'))


def read_all_sheets(file_path):
    """
    Reads the entire Excel/ODS file into a dictionary of DataFrames at once.

    Args:
      file_path: Path to the XLS, XLSX or ODS file.

    Returns:
      A dictionary {sheet_name: DataFrame}, every cell read as text.
    """
    return pd.read_excel(file_path, sheet_name=None, dtype=str)


def load_table(dataframe, schema):
    """
    Normalises a sheet against its column schema.

    Fully blank rows are dropped, missing columns are added, every cell is
    turned into a stripped string and blank cells receive the schema default.

    Args:
      dataframe: The sheet as read by pandas.
      schema: Mapping of column name to default value.

    Returns:
      A list of row dictionaries holding exactly the schema columns.
    """
    dataframe = dataframe.dropna(how="all").copy()
    dataframe.columns = [str(c).strip() for c in dataframe.columns]

    for column in schema:
        if column not in dataframe.columns:
            dataframe[column] = ""

    dataframe = dataframe[list(schema)].fillna("")
    for column, default in schema.items():
        dataframe[column] = dataframe[column].apply(lambda cell: str(cell).strip())
        if default:
            dataframe[column] = dataframe[column].replace("", default)

    return dataframe.to_dict('records')


def load_required_table(sheets, sheet_name, schema):
    dataframe = sheets.get(sheet_name)
    if dataframe is None:
        raise MissingTableError(f'"{sheet_name}" sheet not found')
    rows = load_table(dataframe, schema)
    if not rows:
        raise MissingTableError(f'"{sheet_name}" sheet is empty')
    return rows


def sanitize_name(input_string):
    """
    Sanitizes a probe or sheet name for use as a file or folder name.

    Args:
        input_string: The string to sanitize.

    Returns:
        The string with each of space \\ / : * ? " < > | replaced by underscore.
    """
    return re.sub(SANITIZE_CHARS, "_", input_string)


def channel_sheet_names(sheets):
    return [name for name in sheets if name not in RESERVED_SHEETS]


# --- TABLE BUILDERS ---

def process_unicast_sheet(sheets):
    """
    Builds the probe list and the interface registry from the unicast sheet.

    The first row seen for a (probe, vlan) pair wins, later duplicates are
    ignored. VLAN labels are matched case-insensitively.
    """
    rows = load_required_table(sheets, UNICAST_SHEET, UNICAST_SCHEMA)

    devices = []
    interfaces = {}
    for row in rows:
        name = row["FRIENDLY_NAME"]
        if not name:
            continue

        if name not in devices:
            devices.append(name)

        if row["INTERFACE"]:
            key = (name, row["VLAN"].lower())
            if key not in interfaces:
                interfaces[key] = InterfaceEntry(row["INTERFACE"], row["IP_PRFX_GW"])

    print(f"Found {len(devices)} Probes in unicast sheet")
    return InterfaceRegistry(tuple(devices), MappingProxyType(interfaces))


def process_profiles_sheet(sheets):
    """
    Builds the profile table from the profiles sheet.

    Unlike interfaces, a later row with the same profile name replaces the
    earlier one.
    """
    rows = load_required_table(sheets, PROFILES_SHEET, PROFILES_SCHEMA)

    profiles = {}
    for row in rows:
        if row["profile"]:
            profiles[row["profile"]] = Profile.from_row(row)

    table = ProfileTable(MappingProxyType(profiles))
    print(f"Found {len(table)} profiles in profiles sheet")
    return table


def read_channel_rows(sheets, sheet_name):
    """Returns the ChannelRows of a sheet, or None if the workbook has no such sheet."""
    dataframe = sheets.get(sheet_name)
    if dataframe is None:
        return None
    return [ChannelRow.from_row(row) for row in load_table(dataframe, CHANNEL_SCHEMA)]


# --- CHANNEL TRANSFORMATION ---

def build_mcast_channel(name, source_ip, multicast, port, iface, profile, row):
    return MulticastChannelRecord(
        name=name,
        addr=multicast,
        port=port,
        ssm_addr=source_ip,
        join_iface_name=iface.interface,
        groups=row.groups,
        page=row.page,
        join=row.join,
        audiodepth=profile.audiodepth,
        audiosr=profile.audiosr,
        channel_order=profile.channelorder,
    )


def transform_row(row, device, registry, profiles):
    """
    Turns one channel row into zero, one or two multicast channels for a probe.

    A leg is emitted when the probe has an interface on the leg's VLAN and
    the leg has both a source and a multicast address. Names get an @A/@B
    suffix only when the other leg has a source address as well.
    """
    profile = profiles.lookup(row.profile)

    iface_a = registry.lookup(device, row.vlan_a)
    iface_b = registry.lookup(device, row.vlan_b)

    records = []

    # A leg
    if iface_a and row.source_ip_a and row.multicast_a:
        mname = f"{row.name}@A" if row.source_ip_b else row.name
        records.append(build_mcast_channel(
            mname, row.source_ip_a, row.multicast_a, profile.port_no_a, iface_a, profile, row))

    # B leg
    if iface_b and row.source_ip_b and row.multicast_b:
        mname = f"{row.name}@B" if row.source_ip_a else row.name
        records.append(build_mcast_channel(
            mname, row.source_ip_b, row.multicast_b, profile.port_no_b, iface_b, profile, row))

    return records


def is_skipped(row):
    # Counted independently of the per-leg emission test above.
    no_multicast = not row.multicast_a and not row.multicast_b
    no_source = not row.source_ip_a and not row.source_ip_b
    return no_multicast or no_source


def process_sheet(sheet_name, rows, device, registry, profiles):
    """
    Transforms every row of a channel sheet for one probe, keeping row order.

    Args:
      sheet_name: Name of the channel sheet, used for reporting.
      rows: The sheet's ChannelRows, or None when the sheet does not exist.
      device: Probe friendly name the configuration is generated for.
      registry: InterfaceRegistry from the unicast sheet.
      profiles: ProfileTable from the profiles sheet.

    Returns:
      A SheetResult; its records list is empty when nothing qualified.
    """
    print(f"🔄 Processing sheet: {sheet_name}")
    result = SheetResult(sheet_name, device)

    if rows is None:
        logging.warning(f"⚠️  Skipping missing sheet: {sheet_name}")
        return result
    if not rows:
        logging.warning(f"⚠️  Skipping empty sheet: {sheet_name}")
        return result

    for row in rows:
        records = transform_row(row, device, registry, profiles)
        for record in records:
            logging.info(f"{result.device}: {record.name} {record.ssm_addr} -> {record.addr}:{record.port} on {record.join_iface_name}")
        result.records.extend(records)
        if is_skipped(row):
            result.skipped += 1

    print(f'✅ Sheet "{sheet_name}": {len(result.records)} entries (skipped {result.skipped})')
    return result


# --- XML DOCUMENT ---

def build_document(records):
    """Wraps multicast channels into a pretty-printed probe XML configuration."""
    root = ET.Element("ewe", {"mask": "0x80", "hw_type": "440", "br": "BT"})
    parent = root
    for tag in ("probe", "core", "setup", "mcastnames"):
        parent = ET.SubElement(parent, tag)
    mclist = ET.SubElement(parent, "mclist", {"xmlChildren": "list"})

    for record in records:
        ET.SubElement(mclist, "mcastChannel", record.attributes())

    ET.indent(root, space="  ", level=0)
    return '<?xml version="1.0"?>\n' + ET.tostring(root, encoding="unicode") + "\n"


def write_config_file(output_dir, probe, sheet_name, records):
    """Writes <output_dir>/<probe>/<sheet_name>.xml and returns its path."""
    document = build_document(records)
    probe_output_dir = os.path.join(output_dir, sanitize_name(probe))
    os.makedirs(probe_output_dir, exist_ok=True)
    output_path = os.path.join(probe_output_dir, f"{sanitize_name(sheet_name)}.xml")

    with open(output_path, 'w', encoding='utf-8') as f:
        f.write(document)
    print(f"💾 Written: {output_path}")
    return output_path


# --- PROBE PUSH ---

def probe_address(registry, probe):
    """Returns the probe IP taken from its management interface, or None."""
    iface = registry.lookup(probe, MANAGEMENT_VLAN)
    if not iface:
        logging.error(f'❌ Error: {MANAGEMENT_VLAN.upper()} Interface for probe "{probe}" not found.')
        return None

    # IP_PRFX_GW format: ip/prefix/gateway
    address = iface.ip_prefix_gw.split('/')[0].strip()
    if not address:
        logging.error(f'❌ Error: IP address for probe "{probe}" not found.')
        return None
    return address


def push_url(address, push_mode=""):
    url = f"http://{address}{PUSH_PATH}"
    if push_mode:
        url += f"?mode={push_mode}"
    return url


def push_config(registry, probe, sheet_name, push_mode, records):
    """
    Posts the XML configuration built from records to a probe.

    Failures are logged, never raised. Returns True when the probe accepted
    the configuration.
    """
    address = probe_address(registry, probe)
    if not address:
        return False

    document = build_document(records)
    url = push_url(address, push_mode)
    print(f"📤 Pushing config for {sheet_name} to probe {probe} at {address} using URL {url}")

    try:
        try:
            response = requests.post(
                url,
                data=document.encode("utf-8"),
                headers={"Content-Type": "application/xml"},
            )
        except requests.RequestException as err:
            raise TransportError(str(err)) from err

        if not 200 <= response.status_code < 300:
            raise TransportError(f"HTTP {response.status_code}: {response.text}")
    except TransportError as err:
        logging.error(f"❌ Failed to POST to {probe}: {err}")
        return False

    print(f"✅ Successfully uploaded XML to {probe}")
    return True


# --- DRIVERS ---

def process_all_sheets(sheets, sheet_names, registry, profiles, output_dir):
    """
    Produces a config file for each probe from each channel sheet.

    Returns:
      A list of (probe, sheet, entries, path) tuples, one per file written.
    """
    os.makedirs(output_dir, exist_ok=True)

    written = []
    for sheet_name in sheet_names:
        rows = read_channel_rows(sheets, sheet_name)
        for probe in registry.devices:
            result = process_sheet(sheet_name, rows, probe, registry, profiles)
            if result.records:
                path = write_config_file(output_dir, result.device, result.sheet_name, result.records)
                written.append((result.device, result.sheet_name, len(result.records), path))
    return written


def process_single_target(sheets, sheet_names, registry, profiles, probe, sheet_name, push_mode=""):
    """
    Processes one sheet for one probe and pushes the result to it.

    Unknown probes or sheets are reported but the sheet is still processed.
    """
    if probe not in registry.devices:
        logging.error(f'❌ Error: Probe "{probe}" not found in unicast sheet.')
    if sheet_name in RESERVED_SHEETS:
        logging.error(f'❌ Error: Sheet "{sheet_name}" is not a pushable sheet.')
    elif sheet_name not in sheet_names:
        logging.error(f'❌ Error: Sheet "{sheet_name}" not found in the workbook.')

    rows = read_channel_rows(sheets, sheet_name)
    result = process_sheet(sheet_name, rows, probe, registry, profiles)
    pushed = False
    if result.records:
        pushed = push_config(registry, probe, sheet_name, push_mode, result.records)
    print(f"🎉 Processed {sheet_name} for probe {probe}.")
    return pushed


# --- COMMAND LINE ---

USAGE_EXAMPLES = """
Examples:
  python3 xls2btech.py -x input.xlsx
  python3 xls2btech.py -x input.xls -d ./configs
  python3 xls2btech.py -x input.xlsx -p PROBE-1 -s studio -u
"""


class UsageParser(argparse.ArgumentParser):
    """ArgumentParser that shows the full usage and exits cleanly on bad arguments."""

    def error(self, message):
        self.print_help()
        print(f"\n{message}")
        self.exit(0)


def build_parser():
    parser = UsageParser(
        prog="xls2btech",
        description="Convert a multicast channel spreadsheet to Bridgetech probe XML.",
        epilog=USAGE_EXAMPLES,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("-x", "--xls", required=True, help="Excel file to process (required)")
    parser.add_argument("-d", "--dir", default=DEFAULT_OUTPUT_DIR,
                        help=f"output directory (optional, defaults to {DEFAULT_OUTPUT_DIR})")
    parser.add_argument("-p", "--probe", default="", help="push the selected sheet to this probe")
    parser.add_argument("-s", "--sheet", default="", help="sheet to push, used together with -p")
    mode = parser.add_mutually_exclusive_group()
    mode.add_argument("-u", "--update", dest="push_mode", action="store_const", const="update",
                      default="", help="push in update mode")
    mode.add_argument("-r", "--delete", dest="push_mode", action="store_const", const="delete",
                      help="push in delete mode")
    parser.add_argument("-v", "--verbose", action="store_true", default=False,
                        help="increase the verbosity level")
    return parser


def print_tables(registry, profiles):
    interfaces = [
        [device, vlan, entry.interface, entry.ip_prefix_gw]
        for (device, vlan), entry in registry.interfaces.items()
    ]
    print(tabulate(interfaces, headers=["probe", "vlan", "interface", "ip/prefix/gw"], tablefmt='psql'))

    rows = [
        [p.name, p.content, p.audiodepth, p.channelorder, p.audiosr, p.port_no_a, p.port_no_b]
        for p in profiles.profiles.values()
    ]
    print(tabulate(rows, headers=["profile", "content", "depth", "order", "sr", "port a", "port b"],
                   tablefmt='psql'))


def run(args):
    print(f"Input XLS: {args.xls}")
    print(f"Output directory: {args.dir}")

    print("Reading Excel file...")
    sheets = read_all_sheets(args.xls)
    sheet_names = channel_sheet_names(sheets)
    if not sheet_names:
        raise Xls2BtechError("No valid sheets to process in Excel file.")

    registry = process_unicast_sheet(sheets)
    profiles = process_profiles_sheet(sheets)
    if args.verbose:
        print_tables(registry, profiles)

    if args.probe and args.sheet:
        process_single_target(sheets, sheet_names, registry, profiles,
                              args.probe, args.sheet, args.push_mode)
        return

    written = process_all_sheets(sheets, sheet_names, registry, profiles, args.dir)
    if written:
        print(tabulate(written, headers=["probe", "sheet", "entries", "file"], tablefmt='psql'))
    print(f"🎉 All sheets processed, {len(written)} files written.")


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)

    if bool(args.probe) != bool(args.sheet):
        parser.print_help()
        return 0

    logging.basicConfig(level=logging.INFO if args.verbose else logging.WARNING, format="%(message)s")
    show_title()

    try:
        run(args)
    except Exception as err:
        logging.error(f"❌ Error: {err}")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
