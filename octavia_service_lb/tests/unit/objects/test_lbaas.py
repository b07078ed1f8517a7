# Licensed under the Apache License, Version 2.0 (the "License"); you may
# not use this file except in compliance with the License. You may obtain
# a copy of the License at
#
#      http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS, WITHOUT
# WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied. See the
# License for the specific language governing permissions and limitations
# under the License.

import ddt

from octavia_service_lb.objects import lbaas as obj_lbaas
from octavia_service_lb.tests import base as test_base


@ddt.ddt
class TestFloatingSubnetSpec(test_base.TestCase):

    @ddt.data(({}, False, False),
              ({'subnet_id': 'id'}, True, False),
              ({'subnet': 'public*'}, True, True),
              ({'subnet_tags': 'a,b'}, True, True),
              ({'subnet_id': 'id', 'subnet': 'public*'}, True, False))
    @ddt.unpack
    def test_is_configured(self, fields, configured, matcher):
        spec = obj_lbaas.FloatingSubnetSpec(**fields)

        self.assertEqual(configured, spec.is_configured())
        self.assertEqual(matcher, spec.is_matcher_configured())

    def test_str(self):
        self.assertEqual('<none>', str(obj_lbaas.FloatingSubnetSpec()))
        self.assertEqual(
            "subnet: 'public*', subnet_tags: 'a,b'",
            str(obj_lbaas.FloatingSubnetSpec(subnet='public*',
                                             subnet_tags='a,b')))


class TestServiceConfig(test_base.TestCase):

    def test_defaults(self):
        svc_conf = obj_lbaas.ServiceConfig(lb_name='lb')

        self.assertEqual('lb', svc_conf.lb_name)
        self.assertEqual(-1, svc_conf.connection_limit)
        self.assertEqual([], svc_conf.source_ranges)
        self.assertIsNone(svc_conf.floating_subnet)
        self.assertEqual((5, 3, 1), (svc_conf.monitor_delay,
                                     svc_conf.monitor_timeout,
                                     svc_conf.monitor_max_retries))

    def test_defaults_not_shared(self):
        first = obj_lbaas.ServiceConfig()
        second = obj_lbaas.ServiceConfig()

        first.source_ranges.append('10.0.0.0/8')

        self.assertEqual([], second.source_ranges)

    def test_equality(self):
        self.assertEqual(obj_lbaas.ServiceConfig(lb_name='lb'),
                         obj_lbaas.ServiceConfig(lb_name='lb'))


class TestOctaviaCapabilities(test_base.TestCase):

    def test_defaults(self):
        caps = obj_lbaas.OctaviaCapabilities(provider='amphora')

        self.assertEqual('amphora', caps.provider)
        self.assertFalse(caps.tags)
        self.assertFalse(caps.vip_acl)
