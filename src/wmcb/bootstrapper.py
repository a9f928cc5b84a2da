#
# Copyright (c) 2026 Wind River Systems, Inc.
#
# SPDX-License-Identifier: Apache-2.0
#
'''Bootstraps a Windows host into a Kubernetes worker node.

WinNodeBootstrapper owns the state of one bootstrap or reconfigure run: the
install layout, the kubelet arguments collected so far and the handle to
the Windows service manager. A new instance is expected for every run.
'''

import logging
import os
import shutil

import netaddr

from wmcb import cni
from wmcb import ignition
from wmcb.errors import CopyError
from wmcb.errors import DirCreationError
from wmcb.errors import InvalidArgumentError
from wmcb.errors import ServicePreconditionError
from wmcb.kubelet_config import prep_kubelet_conf_for_windows
from wmcb.models import format_kubelet_arg
from wmcb.models import InstallLayout
from wmcb.models import KubeletArgs
from wmcb.models import TranslationRule
from wmcb.service import ServiceManager
from wmcb.settings import DEFAULTS

LOG = logging.getLogger(__name__)

KUBELET_EXE = "kubelet.exe"
KUBELET_CONF = "kubelet.conf"
KUBELET_CA = "kubelet-ca.crt"
BOOTSTRAP_KUBECONFIG = "bootstrap-kubeconfig"
KUBECONFIG = "kubeconfig"
LOG_DIR_NAME = "log"
KUBELET_LOG = "kubelet.log"

KUBELET_DISPLAY_NAME = "Kubernetes Kubelet"
KUBELET_DESCRIPTION = "Kubernetes node agent for Windows"
WINDOWS_TAINT = "os=Windows:NoSchedule"
WINDOWS_NODE_LABEL = "node.openshift.io/os_id=Windows"


def is_valid_ip(address):
    try:
        if netaddr.valid_ipv4(address):
            return True
        if netaddr.valid_ipv6(address):
            return True
    except netaddr.AddrFormatError:
        pass
    return False


def default_files_to_translate():
    return {
        "/etc/kubernetes/kubelet-ca.crt": TranslationRule(KUBELET_CA),
        "/etc/kubernetes/kubelet.conf": TranslationRule(KUBELET_CONF,
                                                        prep_kubelet_conf_for_windows),
        "/etc/kubernetes/kubeconfig": TranslationRule(BOOTSTRAP_KUBECONFIG),
    }


class WinNodeBootstrapper():  # pylint: disable=too-many-instance-attributes
    def __init__(self, install_dir, ignition_file=None, kubelet_path=None,
                 cni_path=None, cni_config=None, node_ip=None, settings=None,
                 svc_mgr=None):
        self.settings = dict(DEFAULTS) if settings is None else settings
        self.install_dir = install_dir
        self.layout = InstallLayout(install_dir)
        self.ignition_file = ignition_file
        self.kubelet_path = kubelet_path
        self.cni_path = cni_path
        self.cni_config = cni_config
        self.kubelet_service_name = self.settings["kubelet_service_name"]
        self.default_verbosity = str(self.settings["default_verbosity"])
        self.kubelet_args = KubeletArgs()
        self.unit_kubelet_args = dict()
        self._svc_mgr = svc_mgr
        if node_ip:
            if not is_valid_ip(node_ip):
                raise InvalidArgumentError(f"invalid node IP address '{node_ip}'")
            self.kubelet_args["node-ip"] = node_ip

    @property
    def svc_mgr(self):
        if self._svc_mgr is None:
            self._svc_mgr = ServiceManager(timeout=self.settings["service_timeout"],
                                           tries=self.settings["service_tries"],
                                           try_sleep=self.settings["service_try_sleep"])
        return self._svc_mgr

    def translate_file(self, source, transform=None):
        return ignition.translate_file(self, source, transform)

    def parse_ignition_file_contents(self, contents, files_to_translate):
        ignition.parse_ignition_file_contents(self, contents, files_to_translate)

    def check_cni_inputs(self):
        cni.check_cni_inputs(self)

    def ensure_cni_dir_is_present(self):
        cni.ensure_cni_dir_is_present(self)

    def copy_cni_files(self):
        cni.copy_cni_files(self)

    def update_kubelet_args_for_cni(self, cmd):
        return cni.update_kubelet_args_for_cni(self, cmd)

    def _check_kubelet_inputs(self):
        if not self.ignition_file or not os.path.isfile(self.ignition_file):
            raise InvalidArgumentError(f"ignition file {self.ignition_file} is not a file")
        if not self.kubelet_path or not os.path.isfile(self.kubelet_path):
            raise InvalidArgumentError(f"kubelet binary {self.kubelet_path} is not a file")

    def _ensure_dir(self, path):
        try:
            os.makedirs(path, exist_ok=True)
        except OSError as e:
            raise DirCreationError(f"error creating directory {path}: {e}") from e

    def _read_ignition_file(self):
        try:
            with open(self.ignition_file, "rb") as f:
                return f.read()
        except OSError as e:
            raise InvalidArgumentError(
                f"could not read ignition file {self.ignition_file}: {e}") from e

    def _initialize_kubelet_files(self):
        self._ensure_dir(self.install_dir)
        self._ensure_dir(os.path.join(self.install_dir, LOG_DIR_NAME))

        dest = os.path.join(self.install_dir, KUBELET_EXE)
        try:
            shutil.copyfile(self.kubelet_path, dest)
        except OSError as e:
            raise CopyError(f"error copying {self.kubelet_path} to {dest}: {e}") from e

        self.parse_ignition_file_contents(self._read_ignition_file(),
                                          default_files_to_translate())

    def get_kubelet_cmd(self):
        def install_path(*names):
            return os.path.join(self.install_dir, *names)

        kubelet_exe = install_path(KUBELET_EXE)
        if " " in kubelet_exe:
            kubelet_exe = f'"{kubelet_exe}"'
        cmd = [
            kubelet_exe,
            format_kubelet_arg("config", install_path(KUBELET_CONF)),
            format_kubelet_arg("bootstrap-kubeconfig", install_path(BOOTSTRAP_KUBECONFIG)),
            format_kubelet_arg("kubeconfig", install_path(KUBECONFIG)),
            format_kubelet_arg("pod-infra-container-image", self.settings['pause_image']),
            format_kubelet_arg("cert-dir", self.settings['cert_dir']),
            "--windows-service",
            "--logtostderr=false",
            format_kubelet_arg("log-file", install_path(LOG_DIR_NAME, KUBELET_LOG)),
            format_kubelet_arg("register-with-taints", WINDOWS_TAINT),
            format_kubelet_arg("node-labels", WINDOWS_NODE_LABEL),
        ]
        if self.kubelet_args:
            cmd.append(self.kubelet_args.render())
        return " ".join(cmd)

    def initialize_kubelet(self):
        '''Installs the kubelet and registers it as a Windows service.

        configure_cni() has to be run afterwards, the service command set
        here carries no CNI flags.
        '''
        self._check_kubelet_inputs()
        name = self.kubelet_service_name
        exists, _ = self.svc_mgr.get(name)
        if exists:
            # the binary cannot be replaced while the service runs
            self.svc_mgr.stop(name)

        self._initialize_kubelet_files()
        cmd = self.get_kubelet_cmd()
        if exists:
            self.svc_mgr.set_start_command(name, cmd)
        else:
            self.svc_mgr.create(name, cmd, display_name=KUBELET_DISPLAY_NAME,
                                description=KUBELET_DESCRIPTION)
        self.svc_mgr.start(name)
        LOG.info("Kubelet service %s configured with: %s", name, cmd)

    def configure_cni(self):
        '''Installs the CNI plugins and restarts the kubelet with the CNI flags.

        Has to be run again every time initialize_kubelet() is run.
        '''
        name = self.kubelet_service_name
        exists, cmd = self.svc_mgr.get(name)
        if not exists:
            raise ServicePreconditionError(f"{name} service is not present")

        self.check_cni_inputs()
        self.ensure_cni_dir_is_present()
        self.copy_cni_files()

        new_cmd = self.update_kubelet_args_for_cni(cmd)
        self.svc_mgr.stop(name)
        self.svc_mgr.set_start_command(name, new_cmd)
        self.svc_mgr.start(name)
        LOG.info("Kubelet service %s reconfigured for CNI", name)

    def disconnect(self):
        if self._svc_mgr is not None:
            self._svc_mgr.close()
            self._svc_mgr = None
