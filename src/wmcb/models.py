#
# Copyright (c) 2026 Wind River Systems, Inc.
#
# SPDX-License-Identifier: Apache-2.0
#

from collections import namedtuple
import os

CNI_DIR_NAME = "cni"
CNI_CONFIG_DIR_NAME = "config"

# dest is relative to the install directory. transform, when set, is called
# as transform(bootstrapper, contents) and returns the bytes to write.
TranslationRule = namedtuple("TranslationRule", ["dest", "transform"], defaults=(None,))


class KubeletArgs(dict):
    '''Kubelet flags keyed by name without the leading dashes.

    A key written twice keeps its first position and its last value.
    '''

    def render(self):
        return " ".join(format_kubelet_arg(name, value) for name, value in self.items())


def format_kubelet_arg(name, value):
    if value == "" or any(c.isspace() for c in value):
        return f'--{name}="{value}"'
    return f"--{name}={value}"


class InstallLayout():
    def __init__(self, install_dir):
        self.install_dir = install_dir
        self.cni_install_dir = os.path.join(install_dir, CNI_DIR_NAME)
        self.cni_config_install_path = os.path.join(self.cni_install_dir, CNI_CONFIG_DIR_NAME)

    def __repr__(self):
        return f"InstallLayout({self.install_dir!r})"
