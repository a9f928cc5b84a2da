#
# Copyright (c) 2026 Wind River Systems, Inc.
#
# SPDX-License-Identifier: Apache-2.0
#
'''Converts the cloud provider config embedded in the worker ignition file
into the flat form read by the Windows kubelet.

The source is a JSON object. The output keeps the key order of the source:

    {
    <TAB>cloud: AzurePublicCloud,
    <TAB>useInstanceMetadata: true
    }
'''

import json
import logging
import os

from wmcb.errors import DocumentParseError
from wmcb.models import TranslationRule

LOG = logging.getLogger(__name__)

CLOUD_CONF_FILENAME = "cloud.conf"
CLOUD_CONFIG_ARG = "cloud-config"


def format_value(value):
    if isinstance(value, str):
        return value
    return json.dumps(value, separators=(", ", ": "))


def render_cloud_config(cloud_config):
    entries = [f"{key}: {format_value(value)}" for key, value in cloud_config.items()]
    if not entries:
        return "{\n}"
    return "{\n\t" + ",\n\t".join(entries) + "\n}"


def load_cloud_config(contents):
    try:
        cloud_config = json.loads(contents)
    except ValueError as e:
        raise DocumentParseError(f"could not parse cloud config: {e}") from e
    if not isinstance(cloud_config, dict):
        raise DocumentParseError("cloud config must be a JSON object, "
                                 f"got {type(cloud_config).__name__}")
    return cloud_config


def extract_cloud_config(bootstrapper, contents):
    '''Translation function for the embedded cloud config file.

    Also points the kubelet at the rendered file.
    '''
    cloud_config = load_cloud_config(contents)
    dest = os.path.join(bootstrapper.install_dir, CLOUD_CONF_FILENAME)
    bootstrapper.kubelet_args[CLOUD_CONFIG_ARG] = dest
    LOG.debug("Extracted %d cloud config entries for %s", len(cloud_config), dest)
    return render_cloud_config(cloud_config).encode("utf-8")


def cloud_config_rule():
    return TranslationRule(CLOUD_CONF_FILENAME, extract_cloud_config)
