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

from octavia_service_lb import config
from octavia_service_lb import opts
from octavia_service_lb.tests import base as test_base


class TestOpts(test_base.TestCase):

    def test_list_octavia_service_lb_opts(self):
        groups = dict(opts.list_octavia_service_lb_opts())

        self.assertEqual([o.name for o in config.loadbalancer_opts],
                         [o.name for o in groups['loadbalancer']])
        self.assertEqual([o.name for o in config.lb_class_opts],
                         [o.name for o in groups['lb_class:<name>']])
        self.assertIn('neutron', groups)

    def test_list_octavia_service_lb_opts_copies(self):
        groups = dict(opts.list_octavia_service_lb_opts())

        self.assertIsNot(config.loadbalancer_opts, groups['loadbalancer'])
