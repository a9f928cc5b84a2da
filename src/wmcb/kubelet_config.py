#
# Copyright (c) 2026 Wind River Systems, Inc.
#
# SPDX-License-Identifier: Apache-2.0
#
'''Rewrites the Linux worker KubeletConfiguration so that the Windows
kubelet accepts it.

The output is compared byte for byte, so the document text is patched in
place at the spans of the fields that change. Numbers, whitespace and key
order of everything else are left as they are. New keys are written in
compact form at fixed positions. Re-running the rewrite on its own output
changes nothing.
'''

import json
import ntpath
import re

from wmcb.errors import ConfigRewriteError

CGROUP_DRIVER = "cgroupDriver"
CGROUPS_PER_QOS = "cgroupsPerQOS"
ENFORCE_NODE_ALLOCATABLE = "enforceNodeAllocatable"
VOLUME_STATS_AGG_PERIOD = "volumeStatsAggPeriod"
WINDOWS_CGROUP_DRIVER = "cgroupfs"

WHITESPACE = re.compile(r"[ \t\n\r]*")

_decoder = json.JSONDecoder()


class Member():
    '''Location of one "key": value pair of a JSON object in the text.'''

    def __init__(self, value, value_start, value_end):
        self.value = value
        self.value_start = value_start
        self.value_end = value_end


def _skip(text, pos):
    return WHITESPACE.match(text, pos).end()


def _expect(text, pos, char):
    pos = _skip(text, pos)
    if not text.startswith(char, pos):
        raise ConfigRewriteError(f"could not parse kubelet config: expected {char!r} "
                                 f"at position {pos}")
    return pos + 1


def scan_object(text, pos):
    '''Returns the members of the JSON object starting at pos, and its end.

    A key written twice is reported at its last position, as json does.
    '''
    members = {}
    pos = _expect(text, pos, "{")
    pos = _skip(text, pos)
    if text.startswith("}", pos):
        return members, pos + 1
    while True:
        pos = _expect(text, pos, '"')
        try:
            key, pos = json.decoder.scanstring(text, pos)
            pos = _expect(text, pos, ":")
            value_start = _skip(text, pos)
            value, pos = _decoder.raw_decode(text, value_start)
        except ValueError as e:
            raise ConfigRewriteError(f"could not parse kubelet config: {e}") from e
        members.pop(key, None)
        members[key] = Member(value, value_start, pos)
        pos = _skip(text, pos)
        if text.startswith("}", pos):
            return members, pos + 1
        pos = _expect(text, pos, ",")


def _load_kubelet_config(contents):
    try:
        text = contents.decode("utf-8")
    except UnicodeDecodeError as e:
        raise ConfigRewriteError(f"could not parse kubelet config: {e}") from e
    if not text.lstrip(" \t\n\r").startswith("{"):
        raise ConfigRewriteError("kubelet config must be a JSON object")
    members, end = scan_object(text, 0)
    if text[_skip(text, end):]:
        raise ConfigRewriteError(f"could not parse kubelet config: extra data at {end}")
    return text, members


def _get_member(text, members, *path):
    '''Follows path through nested objects and returns the last member.'''
    member = None
    for key in path:
        if key not in members:
            raise ConfigRewriteError(f"kubelet config has no {'.'.join(path)} field")
        member = members[key]
        if key != path[-1]:
            if not isinstance(member.value, dict):
                raise ConfigRewriteError(f"kubelet config {key} is not an object")
            members, _ = scan_object(text, member.value_start)
    return member


def _encode(value):
    return json.dumps(value, separators=(",", ":"), ensure_ascii=False)


def _new_member(key, value):
    return f",{_encode(key)}:{_encode(value)}"


def _apply(text, patches):
    # patches are (start, end, replacement); equal starts keep their order
    ordered = sorted(enumerate(patches), key=lambda p: (p[1][0], p[0]), reverse=True)
    for _, (start, end, replacement) in ordered:
        text = text[:start] + replacement + text[end:]
    return text


def prep_kubelet_conf_for_windows(bootstrapper, contents):
    text, members = _load_kubelet_config(contents)
    patches = []

    ca_file = _get_member(text, members, "authentication", "x509", "clientCAFile")
    if not isinstance(ca_file.value, str) or not ntpath.basename(ca_file.value):
        raise ConfigRewriteError(f"invalid clientCAFile {ca_file.value!r}")
    ca_path = ntpath.join(bootstrapper.install_dir, ntpath.basename(ca_file.value))
    patches.append((ca_file.value_start, ca_file.value_end, _encode(ca_path)))

    driver = _get_member(text, members, CGROUP_DRIVER)
    patches.append((driver.value_start, driver.value_end, _encode(WINDOWS_CGROUP_DRIVER)))

    # Windows has no QoS cgroup hierarchy and no allocatable enforcement
    anchor = _get_member(text, members, VOLUME_STATS_AGG_PERIOD)
    if CGROUPS_PER_QOS in members:
        qos = members[CGROUPS_PER_QOS]
        patches.append((qos.value_start, qos.value_end, _encode(False)))
    else:
        patches.append((anchor.value_end, anchor.value_end, _new_member(CGROUPS_PER_QOS, False)))

    if ENFORCE_NODE_ALLOCATABLE in members:
        enforce = members[ENFORCE_NODE_ALLOCATABLE]
        patches.append((enforce.value_start, enforce.value_end, _encode([])))
    else:
        last = max(members.values(), key=lambda m: m.value_end)
        patches.append((last.value_end, last.value_end, _new_member(ENFORCE_NODE_ALLOCATABLE, [])))

    return _apply(text, patches).encode("utf-8")
