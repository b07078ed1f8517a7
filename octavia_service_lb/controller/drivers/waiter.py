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

import time

from openstack import exceptions as os_exc
from oslo_config import cfg
from oslo_log import log as logging
from oslo_utils import timeutils

from octavia_service_lb import clients
from octavia_service_lb import constants as k_const
from octavia_service_lb import exceptions as k_exc
from octavia_service_lb import utils

CONF = cfg.CONF
LOG = logging.getLogger(__name__)


def get_active_steps():
    return utils.get_env_int(k_const.ENV_WAIT_ACTIVE_STEPS,
                             CONF.loadbalancer.wait_active_steps)


def get_delete_steps():
    return utils.get_env_int(k_const.ENV_WAIT_DELETE_STEPS,
                             CONF.loadbalancer.wait_delete_steps)


def _sleep(delay, cancel):
    if cancel is None:
        time.sleep(delay)
    elif cancel.wait(delay):
        raise k_exc.ReconcileCancelled()


def backoff_timer(steps, cancel=None):
    """Yields the number of polls left after the current one

    The interval between two polls starts at [loadbalancer]wait_initial_delay
    and grows by [loadbalancer]wait_factor. When a cancel event is given it
    is checked before every poll and interrupts the sleep between polls.

    :raises ReconcileCancelled: when the cancel event gets set
    """
    delay = CONF.loadbalancer.wait_initial_delay
    for step in range(steps):
        if cancel is not None and cancel.is_set():
            raise k_exc.ReconcileCancelled()
        remaining = steps - step - 1
        yield remaining
        if remaining and delay:
            _sleep(delay, cancel)
            delay = delay * CONF.loadbalancer.wait_factor


def wait_for_active(loadbalancer_id, cancel=None):
    """Polls the load balancer until its provisioning status is ACTIVE

    :returns: the ACTIVE openstacksdk LoadBalancer
    :raises LoadBalancerInErrorState: as soon as the status is ERROR
    :raises LoadBalancerNotActive: as soon as the load balancer is being
                                   deleted
    :raises LoadBalancerNotReady: once the polls are exhausted
    :raises openstack.exceptions.NotFoundException: if the load balancer
                                                     disappeared
    """
    lbaas = clients.get_loadbalancer_client()
    status = None
    last_error = None

    with timeutils.StopWatch() as timer:
        for remaining in backoff_timer(get_active_steps(), cancel):
            try:
                loadbalancer = lbaas.get_load_balancer(loadbalancer_id)
            except os_exc.NotFoundException:
                raise
            except os_exc.SDKException as ex:
                LOG.warning('Failed to get load balancer %(lb)s while '
                            'waiting for it to be ACTIVE: %(err)s',
                            {'lb': loadbalancer_id, 'err': ex})
                last_error = ex
                continue

            status = loadbalancer.provisioning_status
            if status == k_const.LB_STATUS_ACTIVE:
                LOG.debug('Load balancer %(lb)s is ACTIVE after %(time).3fs',
                          {'lb': loadbalancer_id, 'time': timer.elapsed()})
                return loadbalancer
            if status == k_const.LB_STATUS_ERROR:
                raise k_exc.LoadBalancerInErrorState(loadbalancer_id)
            if status in (k_const.LB_STATUS_PENDING_DELETE,
                          k_const.LB_STATUS_DELETED):
                raise k_exc.LoadBalancerNotActive(loadbalancer_id, status)
            LOG.debug('Provisioning status %(status)s for %(lb)s, %(rem)d '
                      'polls remaining', {'status': status,
                                          'lb': loadbalancer_id,
                                          'rem': remaining})

    if status is None:
        # No poll succeeded.
        status = 'unknown'
        if last_error is not None:
            status = 'unknown (last error: %s)' % last_error
    raise k_exc.LoadBalancerNotReady(loadbalancer_id, status)


def wait_for_deletion(loadbalancer_id, cancel=None):
    """Polls the load balancer until it is gone

    :raises LoadBalancerNotReady: once the polls are exhausted
    """
    lbaas = clients.get_loadbalancer_client()
    status = k_const.LB_STATUS_PENDING_DELETE

    for remaining in backoff_timer(get_delete_steps(), cancel):
        try:
            loadbalancer = lbaas.get_load_balancer(loadbalancer_id)
        except os_exc.NotFoundException:
            LOG.debug('Load balancer %s is deleted', loadbalancer_id)
            return
        except os_exc.SDKException as ex:
            LOG.warning('Failed to get load balancer %(lb)s while waiting '
                        'for its deletion: %(err)s',
                        {'lb': loadbalancer_id, 'err': ex})
            continue

        status = loadbalancer.provisioning_status
        if status == k_const.LB_STATUS_DELETED:
            return

    raise k_exc.LoadBalancerNotReady(loadbalancer_id, status)
