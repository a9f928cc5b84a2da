#
# Copyright (c) 2026 Wind River Systems, Inc.
#
# SPDX-License-Identifier: Apache-2.0
#
'''wmcb command line.

  wmcb initialize-kubelet --ignition-file <path> --kubelet-path <path>
  wmcb configure-cni --cni-path <dir> --cni-config <file>

configure-cni has to be run after every initialize-kubelet.
'''

import argparse
import logging
import os
import sys

from wmcb.bootstrapper import LOG_DIR_NAME
from wmcb.bootstrapper import WinNodeBootstrapper
from wmcb.errors import BootstrapError
from wmcb.service import kubelet_health_check
from wmcb.settings import load_settings

LOGGER_FORMAT = "%(asctime)s.%(msecs)03d %(process)d [%(levelname)s] %(message)s"
LOGGER_NAME = 'wmcb'
LOG_FILE_NAME = 'wmcb.log'

LOG = logging.getLogger(LOGGER_NAME)


def setup_logger(install_dir, debug=False, create_dir=True):
    """Setup a logger writing to the install directory and stderr.

    Unless create_dir is set, a missing install directory is left alone and
    only stderr is logged to.
    """

    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(logging.DEBUG if debug else logging.INFO)
    log_format = logging.Formatter(LOGGER_FORMAT)

    stream_handler = logging.StreamHandler(sys.stderr)
    stream_handler.setFormatter(log_format)
    logger.addHandler(stream_handler)

    root_logs = os.path.join(install_dir, LOG_DIR_NAME)
    if not create_dir and not os.path.isdir(install_dir):
        logger.warning("Logging to %s disabled: install directory not present", root_logs)
        return logger
    try:
        if not os.path.exists(root_logs):
            os.makedirs(root_logs)
        file_handler = logging.FileHandler(os.path.join(root_logs, LOG_FILE_NAME))
    except OSError as e:
        logger.warning("Logging to %s disabled: %s", root_logs, e)
    else:
        file_handler.setFormatter(log_format)
        logger.addHandler(file_handler)
    return logger


def build_parser():
    parser = argparse.ArgumentParser(
        prog='wmcb',
        description='Bootstraps a Windows host into a Kubernetes worker node'
    )
    parser.add_argument("--settings", help="YAML settings file")
    parser.add_argument("--install-dir", help="Installation directory. Defaults to C:\\k")
    parser.add_argument("--debug", action='store_true')
    subparsers = parser.add_subparsers(dest="command", required=True)

    init = subparsers.add_parser(
        "initialize-kubelet",
        help="Installs the kubelet and configures it as a Windows service")
    init.add_argument("--ignition-file", required=True,
                      help="Worker ignition file served by the cluster")
    init.add_argument("--kubelet-path", required=True,
                      help="Location of the kubelet binary")
    init.add_argument("--node-ip", help="IP address the kubelet registers the node with")
    init.add_argument("--wait-for-kubelet", action='store_true')

    configure = subparsers.add_parser(
        "configure-cni",
        help="Configures CNI on the Windows node. Needs to be run every time "
             "initialize-kubelet is run")
    configure.add_argument("--cni-path", required=True,
                           help="The location of the CNI binaries")
    configure.add_argument("--cni-config", required=True,
                           help="The location of the CNI configuration file")
    configure.add_argument("--wait-for-kubelet", action='store_true')
    return parser


def wait_for_kubelet(settings):
    return kubelet_health_check(settings['healthz_endpoint'],
                                tries=settings['healthz_tries'],
                                try_sleep=settings['healthz_try_sleep'],
                                timeout=settings['healthz_timeout'])


def run(args, settings):
    if args.command == "initialize-kubelet":
        wmcb = WinNodeBootstrapper(settings['install_dir'],
                                   ignition_file=args.ignition_file,
                                   kubelet_path=args.kubelet_path,
                                   node_ip=args.node_ip,
                                   settings=settings)
        action = wmcb.initialize_kubelet
    else:
        wmcb = WinNodeBootstrapper(settings['install_dir'],
                                   cni_path=args.cni_path,
                                   cni_config=args.cni_config,
                                   settings=settings)
        action = wmcb.configure_cni

    try:
        action()
    finally:
        wmcb.disconnect()

    if args.wait_for_kubelet and not wait_for_kubelet(settings):
        return 1
    return 0


def main(argv=None):
    args = build_parser().parse_args(argv)

    try:
        settings = load_settings(args.settings, {'install_dir': args.install_dir})
    except BootstrapError as e:
        logging.basicConfig(format=LOGGER_FORMAT)
        LOG.error("%s", e)
        return 1

    # configure-cni checks the install directory, it must not be created here
    setup_logger(settings['install_dir'], args.debug,
                 create_dir=args.command == "initialize-kubelet")
    try:
        rc = run(args, settings)
    except BootstrapError as e:
        LOG.error("%s failed: %s", args.command, e)
        return 1
    if rc == 0:
        LOG.info("%s completed successfully", args.command)
    return rc


if __name__ == "__main__":
    sys.exit(main())
