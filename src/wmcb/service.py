#
# Copyright (c) 2026 Wind River Systems, Inc.
#
# SPDX-License-Identifier: Apache-2.0
#
'''Windows service control through sc.exe, plus the kubelet healthz probe.'''

import logging
import re
import subprocess
import time

import requests

from wmcb.errors import ServiceError

LOG = logging.getLogger(__name__)

SC = "sc.exe"
# Query buffer size for "sc.exe qc", long kubelet command lines do not fit
# in the default one
QC_BUFFER_SIZE = "8192"

ERROR_SERVICE_ALREADY_RUNNING = 1056
ERROR_SERVICE_DOES_NOT_EXIST = 1060
ERROR_SERVICE_NOT_ACTIVE = 1062

STOPPED = "STOPPED"
RUNNING = "RUNNING"

SERVICE_TIMEOUT = 30
SERVICE_TRIES = 10
SERVICE_TRY_SLEEP = 2

_BINARY_PATH_RE = re.compile(r"^\s*BINARY_PATH_NAME\s*:\s?(.*)$", re.MULTILINE)
_STATE_RE = re.compile(r"^\s*STATE\s*:\s*\d+\s+(\w+)", re.MULTILINE)


def execute_system_cmd(cmd, timeout=SERVICE_TIMEOUT):
    try:
        result = subprocess.run(cmd, capture_output=True, text=True, check=False,
                                timeout=timeout)
    except (OSError, subprocess.SubprocessError) as e:
        raise ServiceError(f"could not execute '{' '.join(cmd)}': {e}") from e
    return result.returncode, result.stdout.strip()


class ServiceManager():
    def __init__(self, timeout=SERVICE_TIMEOUT, tries=SERVICE_TRIES, try_sleep=SERVICE_TRY_SLEEP):
        self.timeout = timeout
        self.tries = tries
        self.try_sleep = try_sleep
        self._connected = True

    def _sc(self, *args, allowed=()):
        if not self._connected:
            raise ServiceError("service manager is disconnected")
        cmd = [SC, *args]
        rc, stdout = execute_system_cmd(cmd, self.timeout)
        if rc != 0 and rc not in allowed:
            raise ServiceError(f"'{' '.join(cmd[:3])}' failed with code {rc}: {stdout}")
        return rc, stdout

    def get(self, name):
        '''Returns (exists, start_command) for the service.'''
        rc, stdout = self._sc("qc", name, QC_BUFFER_SIZE, allowed=(ERROR_SERVICE_DOES_NOT_EXIST,))
        if rc == ERROR_SERVICE_DOES_NOT_EXIST:
            return False, ""
        match = _BINARY_PATH_RE.search(stdout)
        if not match:
            raise ServiceError(f"could not find the start command of service {name}")
        return True, match.group(1).strip()

    def exists(self, name):
        exists, _ = self.get(name)
        return exists

    def set_start_command(self, name, command):
        LOG.debug("Setting start command of service %s to: %s", name, command)
        self._sc("config", name, "binPath=", command)

    def create(self, name, command, display_name=None, description=None):
        LOG.info("Creating service %s", name)
        self._sc("create", name, "binPath=", command, "start=", "auto",
                 "DisplayName=", display_name or name)
        if description:
            self._sc("description", name, description)

    def query_state(self, name):
        _, stdout = self._sc("query", name)
        match = _STATE_RE.search(stdout)
        if not match:
            raise ServiceError(f"could not get the state of service {name}")
        return match.group(1)

    def wait_for_state(self, name, state):
        for attempt in range(self.tries):
            current = self.query_state(name)
            if current == state:
                return
            LOG.debug("Service %s is %s, waiting for %s (attempt %d/%d)",
                      name, current, state, attempt + 1, self.tries)
            time.sleep(self.try_sleep)
        raise ServiceError(f"service {name} did not reach state {state}")

    def start(self, name):
        LOG.info("Starting service %s", name)
        self._sc("start", name, allowed=(ERROR_SERVICE_ALREADY_RUNNING,))
        self.wait_for_state(name, RUNNING)

    def stop(self, name):
        LOG.info("Stopping service %s", name)
        self._sc("stop", name, allowed=(ERROR_SERVICE_NOT_ACTIVE,))
        self.wait_for_state(name, STOPPED)

    def close(self):
        self._connected = False


def kubelet_health_check(endpoint, tries, try_sleep, timeout):
    '''Polls the kubelet healthz endpoint until it answers 200.

    Return:
     - True, kubelet is healthy.
     - False, no successful answer after the given number of tries.
    '''
    for attempt in range(tries):
        try:
            r = requests.get(endpoint, timeout=timeout)
            if r.status_code == 200:
                LOG.info("Kubelet is healthy")
                return True
            LOG.debug("Kubelet healthz returned %s", r.status_code)
        except requests.exceptions.RequestException as e:
            LOG.debug("Kubelet healthz not reachable: %s", e)
        if attempt < tries - 1:
            time.sleep(try_sleep)
    LOG.error("Kubelet not healthy after %d tries", tries)
    return False
