#
# Copyright (c) 2026 Wind River Systems, Inc.
#
# SPDX-License-Identifier: Apache-2.0
#

import os

from wmcb import cloud_config
from wmcb.bootstrapper import WinNodeBootstrapper
from wmcb.errors import DocumentParseError

from tests.base import BaseTestCase


class CloudConfigTests(BaseTestCase):
    def test_render(self):
        conf = {"cloud": "AzurePublicCloud", "useInstanceMetadata": True,
                "maximumLoadBalancerRuleCount": 0, "disableOutboundSNAT": None,
                "aadClientId": ""}
        self.assertEqual("{\n"
                         "\tcloud: AzurePublicCloud,\n"
                         "\tuseInstanceMetadata: true,\n"
                         "\tmaximumLoadBalancerRuleCount: 0,\n"
                         "\tdisableOutboundSNAT: null,\n"
                         "\taadClientId: \n"
                         "}", cloud_config.render_cloud_config(conf))

    def test_render_empty(self):
        self.assertEqual("{\n}", cloud_config.render_cloud_config({}))

    def test_format_value(self):
        self.assertEqual('["a", 1]', cloud_config.format_value(["a", 1]))
        self.assertEqual('{"zone": 2}', cloud_config.format_value({"zone": 2}))
        self.assertEqual("1.5", cloud_config.format_value(1.5))
        self.assertEqual("false", cloud_config.format_value(False))

    def test_load_invalid(self):
        for contents in (b"not needed", b'["cloud"]', b'"cloud"'):
            self.assertRaises(DocumentParseError, cloud_config.load_cloud_config, contents)

    def test_extract_sets_kubelet_arg(self):
        wmcb = WinNodeBootstrapper("/opt/k")
        got = cloud_config.extract_cloud_config(
            wmcb, b'{\n\t"location": "centralus",\n\t"cloud": "AzurePublicCloud"\n}')
        self.assertEqual(b"{\n\tlocation: centralus,\n\tcloud: AzurePublicCloud\n}", got)
        self.assertEqual(os.path.join("/opt/k", "cloud.conf"), wmcb.kubelet_args["cloud-config"])

    def test_cloud_config_rule(self):
        rule = cloud_config.cloud_config_rule()
        self.assertEqual("cloud.conf", rule.dest)
        self.assertIs(cloud_config.extract_cloud_config, rule.transform)
