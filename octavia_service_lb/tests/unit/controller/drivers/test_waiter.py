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

import os
import threading
from unittest import mock

import ddt
from openstack import exceptions as os_exc
from oslo_config import cfg

from octavia_service_lb import constants as k_const
from octavia_service_lb.controller.drivers import waiter
from octavia_service_lb import exceptions as k_exc
from octavia_service_lb.tests import base as test_base
from octavia_service_lb.tests import fake
from octavia_service_lb.tests.unit import lb_fixtures as k_fix

CONF = cfg.CONF


class TestBackoffTimer(test_base.TestCase):

    def _set_delay(self, delay):
        CONF.set_override('wait_initial_delay', delay, group='loadbalancer')

    @mock.patch('time.sleep')
    def test_backoff_timer(self, m_sleep):
        self._set_delay(1)

        self.assertEqual([2, 1, 0], list(waiter.backoff_timer(3)))
        m_sleep.assert_has_calls([mock.call(1), mock.call(1.2)])
        self.assertEqual(2, m_sleep.call_count)

    @mock.patch('time.sleep')
    def test_backoff_timer_no_delay(self, m_sleep):
        self.assertEqual([1, 0], list(waiter.backoff_timer(2)))
        m_sleep.assert_not_called()

    def test_backoff_timer_cancelled(self):
        cancel = threading.Event()
        cancel.set()

        self.assertRaises(k_exc.ReconcileCancelled, list,
                          waiter.backoff_timer(3, cancel))

    def test_backoff_timer_cancelled_while_sleeping(self):
        self._set_delay(1)
        cancel = mock.Mock(spec=threading.Event)
        cancel.is_set.return_value = False
        cancel.wait.return_value = True

        timer = waiter.backoff_timer(3, cancel)
        self.assertEqual(2, next(timer))
        self.assertRaises(k_exc.ReconcileCancelled, next, timer)
        cancel.wait.assert_called_once_with(1)

    def test_get_active_steps(self):
        self.assertEqual(CONF.loadbalancer.wait_active_steps,
                         waiter.get_active_steps())

    @mock.patch.dict(os.environ, {k_const.ENV_WAIT_ACTIVE_STEPS: '5'})
    def test_get_active_steps_from_env(self):
        self.assertEqual(5, waiter.get_active_steps())

    @mock.patch.dict(os.environ, {k_const.ENV_WAIT_DELETE_STEPS: 'many'})
    def test_get_delete_steps_invalid_env(self):
        self.assertEqual(CONF.loadbalancer.wait_delete_steps,
                         waiter.get_delete_steps())


@ddt.ddt
class TestWaitForActive(test_base.TestCase):

    def setUp(self):
        super(TestWaitForActive, self).setUp()
        self.lbaas = self.useFixture(k_fix.MockLBaaSClient()).client

    def _lb(self, status):
        return fake.get_loadbalancer(id='lb-id', provisioning_status=status)

    def test_wait_for_active(self):
        active = self._lb(k_const.LB_STATUS_ACTIVE)
        self.lbaas.get_load_balancer.side_effect = [
            self._lb('PENDING_CREATE'), self._lb('PENDING_UPDATE'), active]

        self.assertIs(active, waiter.wait_for_active('lb-id'))
        self.assertEqual(3, self.lbaas.get_load_balancer.call_count)

    def test_wait_for_active_error(self):
        self.lbaas.get_load_balancer.side_effect = [
            self._lb('PENDING_CREATE'), self._lb(k_const.LB_STATUS_ERROR),
            self._lb(k_const.LB_STATUS_ACTIVE)]

        self.assertRaises(k_exc.LoadBalancerInErrorState,
                          waiter.wait_for_active, 'lb-id')
        self.assertEqual(2, self.lbaas.get_load_balancer.call_count)

    def test_wait_for_active_timeout(self):
        CONF.set_override('wait_active_steps', 3, group='loadbalancer')
        self.addCleanup(CONF.clear_override, 'wait_active_steps',
                        group='loadbalancer')
        self.lbaas.get_load_balancer.return_value = self._lb('PENDING_UPDATE')

        ex = self.assertRaises(k_exc.LoadBalancerNotReady,
                               waiter.wait_for_active, 'lb-id')
        self.assertIn('PENDING_UPDATE', str(ex))
        self.assertIn('lb-id', str(ex))
        self.assertEqual(3, self.lbaas.get_load_balancer.call_count)

    def test_wait_for_active_timeout_lookup_errors(self):
        CONF.set_override('wait_active_steps', 2, group='loadbalancer')
        self.addCleanup(CONF.clear_override, 'wait_active_steps',
                        group='loadbalancer')
        self.lbaas.get_load_balancer.side_effect = os_exc.SDKException(
            'gateway timeout')

        ex = self.assertRaises(k_exc.LoadBalancerNotReady,
                               waiter.wait_for_active, 'lb-id')
        self.assertIn('unknown (last error: gateway timeout)', str(ex))
        self.assertNotIn('None', str(ex))
        self.assertEqual(2, self.lbaas.get_load_balancer.call_count)

    @ddt.data(k_const.LB_STATUS_PENDING_DELETE, k_const.LB_STATUS_DELETED)
    def test_wait_for_active_being_deleted(self, status):
        self.lbaas.get_load_balancer.side_effect = [
            self._lb('PENDING_UPDATE'), self._lb(status),
            self._lb(k_const.LB_STATUS_ACTIVE)]

        ex = self.assertRaises(k_exc.LoadBalancerNotActive,
                               waiter.wait_for_active, 'lb-id')
        self.assertIn(status, str(ex))
        self.assertEqual(2, self.lbaas.get_load_balancer.call_count)

    def test_wait_for_active_transient_error(self):
        active = self._lb(k_const.LB_STATUS_ACTIVE)
        self.lbaas.get_load_balancer.side_effect = [
            os_exc.SDKException('boom'), active]

        self.assertIs(active, waiter.wait_for_active('lb-id'))

    def test_wait_for_active_not_found(self):
        self.lbaas.get_load_balancer.side_effect = os_exc.NotFoundException

        self.assertRaises(os_exc.NotFoundException,
                          waiter.wait_for_active, 'lb-id')
        self.lbaas.get_load_balancer.assert_called_once_with('lb-id')

    def test_wait_for_active_cancelled(self):
        cancel = threading.Event()
        cancel.set()

        self.assertRaises(k_exc.ReconcileCancelled,
                          waiter.wait_for_active, 'lb-id', cancel)
        self.lbaas.get_load_balancer.assert_not_called()


class TestWaitForDeletion(test_base.TestCase):

    def setUp(self):
        super(TestWaitForDeletion, self).setUp()
        self.lbaas = self.useFixture(k_fix.MockLBaaSClient()).client

    def test_wait_for_deletion_not_found(self):
        self.lbaas.get_load_balancer.side_effect = [
            fake.get_loadbalancer(provisioning_status='PENDING_DELETE'),
            os_exc.NotFoundException]

        self.assertIsNone(waiter.wait_for_deletion('lb-id'))
        self.assertEqual(2, self.lbaas.get_load_balancer.call_count)

    def test_wait_for_deletion_deleted_status(self):
        self.lbaas.get_load_balancer.return_value = fake.get_loadbalancer(
            provisioning_status=k_const.LB_STATUS_DELETED)

        self.assertIsNone(waiter.wait_for_deletion('lb-id'))
        self.lbaas.get_load_balancer.assert_called_once_with('lb-id')

    def test_wait_for_deletion_timeout(self):
        CONF.set_override('wait_delete_steps', 2, group='loadbalancer')
        self.addCleanup(CONF.clear_override, 'wait_delete_steps',
                        group='loadbalancer')
        self.lbaas.get_load_balancer.return_value = fake.get_loadbalancer(
            provisioning_status='PENDING_DELETE')

        self.assertRaises(k_exc.LoadBalancerNotReady,
                          waiter.wait_for_deletion, 'lb-id')
        self.assertEqual(2, self.lbaas.get_load_balancer.call_count)
