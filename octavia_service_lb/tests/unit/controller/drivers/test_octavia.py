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

from unittest import mock

from openstack import exceptions as os_exc

from octavia_service_lb import constants as k_const
from octavia_service_lb.controller.drivers import octavia
from octavia_service_lb import exceptions as k_exc
from octavia_service_lb.tests import base as test_base
from octavia_service_lb.tests import fake
from octavia_service_lb.tests.unit import lb_fixtures as k_fix


def _versions(*versions):
    return {
        'regionOne': {
            'public': {
                'load-balancer': [
                    {'status': 'SUPPORTED', 'version': v,
                     'raw_status': 'SUPPORTED'} for v in versions
                ],
            },
        },
    }


OCTAVIA_VERSIONS = _versions('2.0', '2.1', '2.2')

BAD_OCTAVIA_VERSIONS = _versions(None)


class TestOctaviaCapabilities(test_base.TestCase):

    def setUp(self):
        super(TestOctaviaCapabilities, self).setUp()
        self.lbaas = self.useFixture(k_fix.MockLBaaSClient()).client

    def test_get_octavia_version(self):
        self.lbaas.get_all_version_data.return_value = OCTAVIA_VERSIONS
        self.assertEqual((2, 2), octavia.get_octavia_version())

    def test_get_octavia_version_is_none(self):
        self.lbaas.get_all_version_data.return_value = BAD_OCTAVIA_VERSIONS
        self.assertRaises(k_exc.UnreachableOctavia,
                          octavia.get_octavia_version)

    def test_get_capabilities_amphora(self):
        self.lbaas.get_all_version_data.return_value = _versions('2.12')

        caps = octavia.get_capabilities('amphora')

        self.assertEqual('amphora', caps.provider)
        self.assertTrue(caps.tags)
        self.assertTrue(caps.timeouts)
        self.assertTrue(caps.flavors)
        self.assertTrue(caps.vip_acl)
        self.assertFalse(caps.availability_zones)
        self.assertFalse(caps.http_monitors_on_udp)

    def test_get_capabilities_old_api(self):
        self.lbaas.get_all_version_data.return_value = _versions('2.0')

        caps = octavia.get_capabilities('amphora')

        self.assertFalse(caps.tags)
        self.assertFalse(caps.timeouts)
        self.assertFalse(caps.vip_acl)

    def test_get_capabilities_ovn(self):
        self.lbaas.get_all_version_data.return_value = _versions('2.20')

        caps = octavia.get_capabilities(k_const.OCTAVIA_PROVIDER_OVN)

        self.assertTrue(caps.tags)
        self.assertFalse(caps.timeouts)
        self.assertFalse(caps.flavors)
        self.assertFalse(caps.vip_acl)
        self.assertFalse(caps.availability_zones)
        self.assertFalse(caps.http_monitors_on_udp)


@mock.patch('octavia_service_lb.controller.drivers.waiter.wait_for_active')
class TestOctaviaAccessor(test_base.TestCase):

    def setUp(self):
        super(TestOctaviaAccessor, self).setUp()
        self.lbaas = self.useFixture(k_fix.MockLBaaSClient()).client

    def test_get_load_balancer(self, m_wait):
        loadbalancer = fake.get_loadbalancer()
        self.lbaas.get_load_balancer.return_value = loadbalancer

        self.assertIs(loadbalancer,
                      octavia.get_load_balancer(loadbalancer.id))

    def test_get_load_balancer_not_found(self, m_wait):
        self.lbaas.get_load_balancer.side_effect = os_exc.NotFoundException

        self.assertIsNone(octavia.get_load_balancer('lb-id'))

    def test_find_load_balancer_primary(self, m_wait):
        loadbalancer = fake.get_loadbalancer(name='primary')
        self.lbaas.load_balancers.side_effect = [[loadbalancer], []]

        self.assertIs(loadbalancer,
                      octavia.find_load_balancer('primary', 'legacy'))
        self.lbaas.load_balancers.assert_has_calls(
            [mock.call(name='primary'), mock.call(name='legacy')])

    def test_find_load_balancer_legacy(self, m_wait):
        loadbalancer = fake.get_loadbalancer(name='legacy')
        self.lbaas.load_balancers.side_effect = [[], [loadbalancer]]

        self.assertIs(loadbalancer,
                      octavia.find_load_balancer('primary', 'legacy'))

    def test_find_load_balancer_none(self, m_wait):
        self.lbaas.load_balancers.return_value = []

        self.assertIsNone(octavia.find_load_balancer('primary', 'legacy'))

    def test_find_load_balancer_skips_deleted(self, m_wait):
        deleting = fake.get_loadbalancer(
            provisioning_status=k_const.LB_STATUS_PENDING_DELETE)
        loadbalancer = fake.get_loadbalancer()
        self.lbaas.load_balancers.side_effect = [[deleting, loadbalancer],
                                                 []]

        self.assertIs(loadbalancer,
                      octavia.find_load_balancer('primary', 'legacy'))

    def test_find_load_balancer_multiple(self, m_wait):
        self.lbaas.load_balancers.side_effect = [
            [fake.get_loadbalancer(), fake.get_loadbalancer()], []]

        self.assertRaises(k_exc.MultipleResults,
                          octavia.find_load_balancer, 'primary', 'legacy')

    def test_find_load_balancer_both_names_match(self, m_wait):
        self.lbaas.load_balancers.side_effect = [
            [fake.get_loadbalancer(name='primary')],
            [fake.get_loadbalancer(name='legacy')]]

        self.assertRaises(k_exc.MultipleResults,
                          octavia.find_load_balancer, 'primary', 'legacy')

    def test_find_load_balancer_same_lb_twice(self, m_wait):
        loadbalancer = fake.get_loadbalancer()
        self.lbaas.load_balancers.side_effect = [[loadbalancer],
                                                 [loadbalancer]]

        self.assertIs(loadbalancer,
                      octavia.find_load_balancer('primary', 'legacy'))

    def test_create_load_balancer(self, m_wait):
        created = fake.get_loadbalancer(provisioning_status='PENDING_CREATE')
        self.lbaas.create_load_balancer.return_value = created

        ret = octavia.create_load_balancer(name='lb', vip_subnet_id='s')

        self.lbaas.create_load_balancer.assert_called_once_with(
            name='lb', vip_subnet_id='s')
        m_wait.assert_called_once_with(created.id, None)
        self.assertIs(m_wait.return_value, ret)

    def test_update_load_balancer_tags(self, m_wait):
        octavia.update_load_balancer_tags('lb-id', [])

        self.lbaas.update_load_balancer.assert_called_once_with('lb-id',
                                                                tags=[])
        m_wait.assert_called_once_with('lb-id', None)

    def test_update_load_balancer_tags_no_wait(self, m_wait):
        ret = octavia.update_load_balancer_tags('lb-id', ['a'], wait=False)

        self.assertIs(self.lbaas.update_load_balancer.return_value, ret)
        m_wait.assert_not_called()

    @mock.patch('octavia_service_lb.controller.drivers.waiter.'
                'wait_for_deletion')
    def test_delete_load_balancer(self, m_wait_del, m_wait):
        cancel = mock.Mock()

        octavia.delete_load_balancer('lb-id', cascade=True, cancel=cancel)

        self.lbaas.delete_load_balancer.assert_called_once_with(
            'lb-id', ignore_missing=True, cascade=True)
        m_wait_del.assert_called_once_with('lb-id', cancel)
        m_wait.assert_not_called()

    def test_list_listeners(self, m_wait):
        listener = fake.get_listener()
        self.lbaas.listeners.return_value = iter([listener])

        self.assertEqual([listener], octavia.list_listeners('lb-id'))
        self.lbaas.listeners.assert_called_once_with(
            load_balancer_id='lb-id')

    def test_create_listener(self, m_wait):
        listener = fake.get_listener()
        self.lbaas.create_listener.return_value = listener

        ret = octavia.create_listener('lb-id', protocol='TCP',
                                      protocol_port=80)

        self.assertIs(listener, ret)
        self.lbaas.create_listener.assert_called_once_with(
            loadbalancer_id='lb-id', protocol='TCP', protocol_port=80)
        m_wait.assert_called_once_with('lb-id', None)

    def test_update_listener(self, m_wait):
        octavia.update_listener('lb-id', 'lsnr-id', connection_limit=10)

        self.lbaas.update_listener.assert_called_once_with(
            'lsnr-id', connection_limit=10)
        m_wait.assert_called_once_with('lb-id', None)

    def test_delete_listener(self, m_wait):
        octavia.delete_listener('lb-id', 'lsnr-id')

        self.lbaas.delete_listener.assert_called_once_with(
            'lsnr-id', ignore_missing=True)
        m_wait.assert_called_once_with('lb-id', None)

    def test_delete_listener_no_wait(self, m_wait):
        octavia.delete_listener('lb-id', 'lsnr-id', wait=False)

        self.lbaas.delete_listener.assert_called_once_with(
            'lsnr-id', ignore_missing=True)
        m_wait.assert_not_called()

    def test_get_pool_by_listener(self, m_wait):
        pool = fake.get_pool(listener_id='lsnr-id')
        self.lbaas.pools.return_value = [fake.get_pool(listener_id='other'),
                                         pool]

        self.assertIs(pool, octavia.get_pool_by_listener('lb-id', 'lsnr-id'))
        self.lbaas.pools.assert_called_once_with(loadbalancer_id='lb-id')

    def test_get_pool_by_listener_not_found(self, m_wait):
        self.lbaas.pools.return_value = [fake.get_pool()]

        self.assertIsNone(octavia.get_pool_by_listener('lb-id', 'lsnr-id'))

    def test_create_pool(self, m_wait):
        octavia.create_pool('lb-id', listener_id='lsnr-id', protocol='TCP')

        self.lbaas.create_pool.assert_called_once_with(
            loadbalancer_id='lb-id', listener_id='lsnr-id', protocol='TCP')
        m_wait.assert_called_once_with('lb-id', None)

    def test_delete_pool(self, m_wait):
        octavia.delete_pool('lb-id', 'pool-id')

        self.lbaas.delete_pool.assert_called_once_with('pool-id',
                                                       ignore_missing=True)
        m_wait.assert_called_once_with('lb-id', None)

    def test_delete_pool_no_wait(self, m_wait):
        octavia.delete_pool('lb-id', 'pool-id', wait=False)

        self.lbaas.delete_pool.assert_called_once_with('pool-id',
                                                       ignore_missing=True)
        m_wait.assert_not_called()

    def test_batch_update_members(self, m_wait):
        members = [{'address': '10.0.0.5', 'protocol_port': 30080}]
        response = mock.Mock(status_code=202)
        self.lbaas.put.return_value = response

        with mock.patch.object(os_exc, 'raise_from_response') as m_raise:
            octavia.batch_update_members('lb-id', 'pool-id', members)

        self.lbaas.put.assert_called_once_with(
            '/lbaas/pools/pool-id/members', json={'members': members})
        m_raise.assert_called_once_with(response)
        m_wait.assert_called_once_with('lb-id', None)

    def test_batch_update_members_failed(self, m_wait):
        self.lbaas.put.return_value = mock.Mock()

        with mock.patch.object(os_exc, 'raise_from_response',
                               side_effect=os_exc.BadRequestException):
            self.assertRaises(os_exc.BadRequestException,
                              octavia.batch_update_members, 'lb-id',
                              'pool-id', [])
        m_wait.assert_not_called()

    def test_get_health_monitor_not_found(self, m_wait):
        self.lbaas.get_health_monitor.side_effect = os_exc.NotFoundException

        self.assertIsNone(octavia.get_health_monitor('hm-id'))

    def test_create_health_monitor(self, m_wait):
        octavia.create_health_monitor('lb-id', pool_id='pool-id', type='TCP')

        self.lbaas.create_health_monitor.assert_called_once_with(
            pool_id='pool-id', type='TCP')
        m_wait.assert_called_once_with('lb-id', None)

    def test_delete_health_monitor(self, m_wait):
        octavia.delete_health_monitor('lb-id', 'hm-id')

        self.lbaas.delete_health_monitor.assert_called_once_with(
            'hm-id', ignore_missing=True)
        m_wait.assert_called_once_with('lb-id', None)

    def test_delete_health_monitor_no_wait(self, m_wait):
        octavia.delete_health_monitor('lb-id', 'hm-id', wait=False)

        self.lbaas.delete_health_monitor.assert_called_once_with(
            'hm-id', ignore_missing=True)
        m_wait.assert_not_called()
