#
# Copyright (c) 2026 Wind River Systems, Inc.
#
# SPDX-License-Identifier: Apache-2.0
#
'''Installs the CNI plugins and points the kubelet command line at them.

Every step can be re-run any number of times against the same install
directory and converges to the same result.
'''

import logging
import os
import re
import shutil

from wmcb.errors import CNIConfigError
from wmcb.errors import CNIPathError
from wmcb.errors import CopyError
from wmcb.errors import DirCreationError
from wmcb.errors import InstallDirError
from wmcb.models import format_kubelet_arg

LOG = logging.getLogger(__name__)

CNI_ARGS = ("resolv-conf", "network-plugin", "cni-bin-dir", "cni-conf-dir")


def check_cni_inputs(bootstrapper):
    layout = bootstrapper.layout
    try:
        os.stat(layout.install_dir)
    except OSError as e:
        raise InstallDirError(f"error accessing install directory {layout.install_dir}: {e}") from e
    if not os.path.isdir(layout.install_dir):
        raise InstallDirError(f"install directory {layout.install_dir} is not a directory")

    try:
        os.stat(bootstrapper.cni_path)
    except (OSError, TypeError) as e:
        raise CNIPathError(f"error accessing CNI path {bootstrapper.cni_path}: {e}") from e
    if not os.path.isdir(bootstrapper.cni_path):
        raise CNIPathError(f"CNI path cannot be a file: {bootstrapper.cni_path}")

    try:
        os.stat(bootstrapper.cni_config)
    except (OSError, TypeError) as e:
        raise CNIConfigError(f"error accessing CNI config {bootstrapper.cni_config}: {e}") from e
    if os.path.isdir(bootstrapper.cni_config):
        raise CNIConfigError(f"CNI config cannot be a directory: {bootstrapper.cni_config}")


def ensure_cni_dir_is_present(bootstrapper):
    path = bootstrapper.layout.cni_config_install_path
    if os.path.isdir(path):
        return
    LOG.info("Creating CNI directory %s", path)
    try:
        os.makedirs(path, exist_ok=True)
    except OSError as e:
        raise DirCreationError(f"error creating CNI directory {path}: {e}") from e


def _copy_file(src, dest_dir):
    dest = os.path.join(dest_dir, os.path.basename(src))
    try:
        shutil.copyfile(src, dest)
    except OSError as e:
        raise CopyError(f"error copying {src} to {dest}: {e}") from e
    return dest


def copy_cni_files(bootstrapper):
    layout = bootstrapper.layout
    try:
        entries = sorted(os.listdir(bootstrapper.cni_path))
    except (OSError, TypeError) as e:
        raise CopyError(f"error reading CNI path {bootstrapper.cni_path}: {e}") from e

    files = [os.path.join(bootstrapper.cni_path, entry) for entry in entries
             if os.path.isfile(os.path.join(bootstrapper.cni_path, entry))]
    if not files:
        raise CopyError(f"no files present in CNI path {bootstrapper.cni_path}")

    for src in files:
        _copy_file(src, layout.cni_install_dir)
    LOG.info("Copied %d CNI binaries to %s", len(files), layout.cni_install_dir)

    dest = _copy_file(bootstrapper.cni_config, layout.cni_config_install_path)
    LOG.info("Copied CNI config to %s", dest)


def _strip_arg(cmd, name):
    pattern = re.compile(r"(?:^|\s+)--" + re.escape(name) + r'(?:=(?:"[^"]*"|\S*))?(?=\s|$)')
    return pattern.sub("", cmd)


def get_cni_args(layout):
    return {
        "resolv-conf": "",
        "network-plugin": "cni",
        "cni-bin-dir": layout.cni_install_dir,
        "cni-conf-dir": layout.cni_config_install_path,
    }


def update_kubelet_args_for_cni(bootstrapper, cmd):
    '''Returns the kubelet command line with the CNI flags set.

    Earlier values of those flags are dropped first, whatever they were.
    '''
    for name in CNI_ARGS:
        cmd = _strip_arg(cmd, name)
    cni_args = get_cni_args(bootstrapper.layout)
    bootstrapper.kubelet_args.update(cni_args)
    rendered = " ".join(format_kubelet_arg(name, cni_args[name]) for name in CNI_ARGS)
    return f"{cmd.strip()} {rendered}"
