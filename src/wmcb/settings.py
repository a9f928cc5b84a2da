#
# Copyright (c) 2026 Wind River Systems, Inc.
#
# SPDX-License-Identifier: Apache-2.0
#

from ruamel.yaml import YAML
from ruamel.yaml import YAMLError

from wmcb.errors import SettingsError

DEFAULTS = {
    'install_dir': 'C:\\k',
    'kubelet_service_name': 'kubelet',
    'pause_image': 'mcr.microsoft.com/oss/kubernetes/pause:3.9',
    'cert_dir': 'c:\\var\\lib\\kubelet\\pki\\',
    'default_verbosity': '3',
    'service_timeout': 30,
    'service_tries': 10,
    'service_try_sleep': 2,
    'healthz_endpoint': 'http://localhost:10248/healthz',
    'healthz_tries': 20,
    'healthz_try_sleep': 5,
    'healthz_timeout': 5,
}


def load_settings(path=None, overrides=None):
    '''Returns the defaults updated with the YAML file at path, then with
    the non-None overrides.
    '''
    settings = dict(DEFAULTS)
    if path:
        settings.update(_read_settings_file(path))
    for key, value in (overrides or {}).items():
        if value is not None:
            settings[key] = value
    return settings


def _read_settings_file(path):
    try:
        with open(path, 'r') as f:
            data = YAML(typ='safe').load(f)
    except (OSError, YAMLError) as e:
        raise SettingsError(f"could not load settings from {path}: {e}") from e
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise SettingsError(f"settings file {path} must contain a mapping")
    unknown = sorted(set(data) - set(DEFAULTS))
    if unknown:
        raise SettingsError(f"unknown settings in {path}: {', '.join(map(str, unknown))}")
    return data
