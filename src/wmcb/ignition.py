#
# Copyright (c) 2026 Wind River Systems, Inc.
#
# SPDX-License-Identifier: Apache-2.0
#
'''Walks a worker ignition file and materializes the files the Windows node
needs.

Only the subset of the ignition format used by the worker payload is read:
storage.files[].path / contents.source and systemd.units[].name / contents.
File contents are expected as "data:,<percent-encoded bytes>" URIs.
'''

import json
import logging
import os
import posixpath
import re
import shlex
import urllib.parse

from wmcb.cloud_config import CLOUD_CONF_FILENAME
from wmcb.cloud_config import CLOUD_CONFIG_ARG
from wmcb.cloud_config import cloud_config_rule
from wmcb.cloud_config import extract_cloud_config
from wmcb.errors import CopyError
from wmcb.errors import DecodeError
from wmcb.errors import DocumentParseError
from wmcb.errors import InvalidArgumentError
from wmcb.errors import TranslationError

LOG = logging.getLogger(__name__)

DATA_URI_PREFIX = "data:,"
KUBELET_UNIT_NAME = "kubelet.service"
EXEC_START = "ExecStart="
DEFAULT_VERBOSITY = "3"

# Flags of the Linux kubelet unit that also apply to the Windows kubelet
CARRIED_OVER_ARGS = ("cloud-provider", "v")

_INVALID_ESCAPE = re.compile(r"%(?![0-9A-Fa-f]{2})")


def decode_data_uri(source):
    if not isinstance(source, str) or not source.startswith(DATA_URI_PREFIX):
        raise DecodeError(f"unsupported file source {str(source)[:32]!r}, "
                          f"expected a '{DATA_URI_PREFIX}' data URI")
    payload = source[len(DATA_URI_PREFIX):]
    if match := _INVALID_ESCAPE.search(payload):
        raise DecodeError(f"invalid percent-encoding at offset {match.start()} "
                          f"of data URI: {payload[match.start():match.start() + 3]!r}")
    return urllib.parse.unquote_to_bytes(payload)


def translate_file(bootstrapper, source, transform=None):
    contents = decode_data_uri(source)
    if transform is None:
        return contents
    try:
        return transform(bootstrapper, contents)
    except Exception as e:
        raise TranslationError(f"could not translate file contents: {e}") from e


def load_ignition(contents):
    try:
        ignition = json.loads(contents)
    except ValueError as e:
        raise DocumentParseError(f"could not parse ignition file: {e}") from e
    if not isinstance(ignition, dict):
        raise DocumentParseError("ignition file must contain a JSON object")
    return ignition


def _get_section_list(ignition, section, key):
    items = (ignition.get(section) or {}).get(key) or []
    if not isinstance(items, list):
        raise DocumentParseError(f"{section}.{key} in ignition file must be a list")
    return items


def get_files(ignition):
    return _get_section_list(ignition, "storage", "files")


def get_unit(ignition, name):
    for unit in _get_section_list(ignition, "systemd", "units"):
        if isinstance(unit, dict) and unit.get("name") == name:
            return unit
    return None


def get_exec_start(unit_contents):
    '''Returns the ExecStart command of a unit with continuations joined.'''
    lines = iter(unit_contents.splitlines())
    for line in lines:
        line = line.strip()
        if not line.startswith(EXEC_START):
            continue
        pieces = [line[len(EXEC_START):]]
        while pieces[-1].endswith("\\"):
            pieces[-1] = pieces[-1][:-1].strip()
            pieces.append(next(lines, "").strip())
        return " ".join(piece for piece in pieces if piece)
    return None


def iter_kubelet_flags(command):
    '''Yields (name, value) for every --flag[=value] token of a command line.'''
    try:
        tokens = shlex.split(command)
    except ValueError as e:
        raise InvalidArgumentError(f"could not split kubelet command line: {e}") from e
    for token in tokens:
        if token.startswith("--"):
            name, _, value = token[2:].partition("=")
            yield name, value


def parse_kubelet_flags(command):
    return dict(iter_kubelet_flags(command))


def get_cloud_config_filename(path):
    filename = posixpath.basename(path)
    if filename in ("", ".", ".."):
        raise InvalidArgumentError(f"invalid cloud-config argument '--cloud-config={path}', "
                                   "could not get cloud config filename")
    return filename


def parse_kubelet_unit(bootstrapper, unit, files_to_translate):
    command = get_exec_start(unit.get("contents") or "")
    if command is None:
        LOG.warning("No ExecStart found in %s", KUBELET_UNIT_NAME)
        return
    flags = dict()
    for name, value in iter_kubelet_flags(command):
        if name == CLOUD_CONFIG_ARG:
            get_cloud_config_filename(value)
        flags[name] = value
    bootstrapper.unit_kubelet_args.update(flags)

    for name in CARRIED_OVER_ARGS:
        if name in flags:
            bootstrapper.kubelet_args[name] = flags[name]

    if (cloud_config_path := flags.get(CLOUD_CONFIG_ARG)) is not None:
        if cloud_config_path not in files_to_translate:
            files_to_translate[cloud_config_path] = cloud_config_rule()
        LOG.info("Cloud config %s will be written to %s", cloud_config_path,
                 os.path.join(bootstrapper.install_dir, CLOUD_CONF_FILENAME))


def write_file(path, contents):
    try:
        with open(path, "wb") as f:
            f.write(contents)
    except OSError as e:
        raise CopyError(f"could not write to {path}: {e}") from e


def parse_ignition_file_contents(bootstrapper, contents, files_to_translate):
    '''Extracts kubelet arguments and files from the ignition file contents.

    files_to_translate maps an ignition file path to a TranslationRule. It is
    not modified. Files without a rule are skipped, as is a cloud config the
    kubelet unit does not point at. Kubelet flags found along the way are
    added to bootstrapper.kubelet_args.
    '''
    ignition = load_ignition(contents)
    files_to_translate = dict(files_to_translate)

    unit = get_unit(ignition, KUBELET_UNIT_NAME)
    if unit is not None:
        parse_kubelet_unit(bootstrapper, unit, files_to_translate)
    else:
        LOG.info("No %s unit found in ignition file", KUBELET_UNIT_NAME)

    if not bootstrapper.kubelet_args.get("v"):
        bootstrapper.kubelet_args["v"] = bootstrapper.default_verbosity

    for entry in get_files(ignition):
        if not isinstance(entry, dict):
            raise DocumentParseError(f"invalid ignition file entry: {entry!r}")
        path = entry.get("path")
        rule = files_to_translate.get(path)
        if rule is None:
            continue
        if (rule.transform is extract_cloud_config and
                bootstrapper.unit_kubelet_args.get(CLOUD_CONFIG_ARG) != path):
            # the kubelet would not be started with this cloud config
            LOG.warning("Skipping cloud config %s, not referenced by %s", path,
                        KUBELET_UNIT_NAME)
            continue
        source = (entry.get("contents") or {}).get("source")
        if source is None:
            raise DocumentParseError(f"ignition file entry {path} has no contents source")
        new_contents = translate_file(bootstrapper, source, rule.transform)
        dest = os.path.join(bootstrapper.install_dir, rule.dest)
        write_file(dest, new_contents)
        LOG.info("Translated %s to %s", path, dest)
