#!/usr/bin/env python3
"""
cli.py

Check APKs for the android:debuggable manifest attribute before deploying
them to a device.
"""

# ------------------------------------------------------------
# How to run (examples)
# ------------------------------------------------------------
#
# 1) Against a connected device (property read through adb):
#   apk-debug-check --serial emulator-5554 app.apk test.apk
#
# 2) Without a device, supplying the property by hand:
#   apk-debug-check --prop ro.debuggable=0 out/apks/
#
# 3) Also write one CSV row per APK:
#   apk-debug-check --prop ro.debuggable=0 --report results.csv out/apks/
#
# The check is advisory: the exit status is 0 whenever APKs were found, even
# if some were flagged or could not be read.
# ------------------------------------------------------------

from __future__ import annotations

import argparse
import csv
import logging
import os
import sys
from typing import List, Optional

from .checker import ApkProbeResult, device_is_debuggable, emit_warning, probe_apks
from .config import CheckerConfig, DEBUGGABLE_PROPERTY
from .device import AdbDevice, StaticDevice, parse_property_assignments
from axml.manifest import DEFAULT_MAX_MANIFEST_BYTES, MANIFEST_ENTRY

logger = logging.getLogger(__name__)

APK_EXT = ".apk"
REPORT_FIELDS = ["apk", "debuggable", "error"]


# ----------------------------
# File discovery (flat dir)
# ----------------------------

def discover_apks(inputs: List[str]) -> List[str]:
    out: List[str] = []
    for input_path in inputs:
        if os.path.isfile(input_path):
            out.append(os.path.abspath(input_path))
        elif os.path.isdir(input_path):
            found = sorted(
                os.path.abspath(e.path)
                for e in os.scandir(input_path)
                if e.is_file() and e.name.lower().endswith(APK_EXT)
            )
            out.extend(found)
        else:
            raise ValueError(f"input is neither file nor directory: {input_path}")
    return out


def write_report(path: str, results: List[ApkProbeResult]) -> None:
    with open(path, "w", newline="", encoding="utf-8") as f:
        w = csv.DictWriter(f, fieldnames=REPORT_FIELDS)
        w.writeheader()
        for r in results:
            w.writerow({
                "apk": r.path,
                "debuggable": "" if r.debuggable is None else str(r.debuggable).lower(),
                "error": r.error,
            })


# ----------------------------
# CLI
# ----------------------------

def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    p = argparse.ArgumentParser(
        prog="apk-debug-check",
        description="Warn when non-debuggable APKs are about to be deployed to a non-debug device.",
    )
    p.add_argument("inputs", nargs="+", help="APK files or flat directories of APKs.")

    dev = p.add_mutually_exclusive_group()
    dev.add_argument("--serial", default=None, help="Query this device through adb.")
    dev.add_argument("--prop", action="append", default=None, metavar="KEY=VALUE",
                     help="Device property supplied by hand (repeatable); no adb call is made.")
    p.add_argument("--adb", default="adb", help="adb executable (default: adb from PATH).")

    p.add_argument("--manifest-entry", default=MANIFEST_ENTRY)
    p.add_argument("--max-manifest-bytes", type=int, default=DEFAULT_MAX_MANIFEST_BYTES)
    p.add_argument("--debuggable-property", default=DEBUGGABLE_PROPERTY)

    p.add_argument("--report", default=None, help="Write per-APK results to this CSV file.")
    p.add_argument("--progress", action="store_true", default=False, help="Show a progress bar.")
    p.add_argument("-v", "--verbose", action="store_true", default=False)
    return p.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(levelname)s %(name)s: %(message)s",
    )

    try:
        cfg = CheckerConfig.from_args(args)
        if args.prop is not None:
            device = StaticDevice(parse_property_assignments(args.prop))
        else:
            device = AdbDevice(serial=args.serial, adb=args.adb)
        apks = discover_apks(args.inputs)
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    if not apks:
        print("No APKs found to check.", file=sys.stderr)
        return 1
    logger.debug("config=%s device=%r apks=%d", cfg.to_dict(), device, len(apks))

    debug_device = device_is_debuggable(device.get_property, cfg.debuggable_property)
    if debug_device and not args.report:
        print(f"Device reports {cfg.debuggable_property}=1; all APKs are debuggable there.", flush=True)
        return 0

    results = probe_apks(apks, cfg, progress=args.progress)
    if args.report:
        write_report(args.report, results)
        print(f"Report written to: {args.report}", flush=True)

    if not debug_device:
        emit_warning(results, lambda msg: print(msg, file=sys.stderr, flush=True))

    failed = sum(1 for r in results if not r.ok)
    print(f"Checked {len(results)} APK(s); {failed} could not be probed.", flush=True)
    return 0


if __name__ == "__main__":
    sys.exit(main())
