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

from openstack import exceptions as os_exc
from oslo_config import cfg
from oslo_log import log as logging
from oslo_utils import versionutils

from octavia_service_lb import clients
from octavia_service_lb import constants as k_const
from octavia_service_lb.controller.drivers import waiter
from octavia_service_lb import exceptions as k_exc
from octavia_service_lb.objects import lbaas as obj_lbaas

CONF = cfg.CONF
LOG = logging.getLogger(__name__)

_LIVE_STATUSES_EXCLUDED = (k_const.LB_STATUS_DELETED,
                           k_const.LB_STATUS_PENDING_DELETE)


def get_octavia_version():
    lbaas = clients.get_loadbalancer_client()
    region_name = getattr(CONF.neutron, 'region_name', None)

    regions = lbaas.get_all_version_data()
    # If region was specified take it, otherwise just take first as default
    endpoints = regions.get(region_name, list(regions.values())[0])
    # Take the first endpoint
    services = list(endpoints.values())[0]
    # Try load-balancer service, if not take the first
    versions = services.get(k_const.OCTAVIA_SERVICE_TYPE,
                            list(services.values())[0])
    # Lookup the latest version. For safety, we won't look for
    # version['status'] == 'CURRENT' and assume it's the maximum. Also we
    # won't assume this dict is sorted.
    max_ver = 0, 0
    for version in versions:
        if version.get('version') is None:
            raise k_exc.UnreachableOctavia('Unable to reach Octavia API')
        v_tuple = versionutils.convert_version_to_tuple(
            version['version'])
        if v_tuple > max_ver:
            max_ver = v_tuple

    LOG.debug("Detected Octavia version %d.%d", *max_ver)
    return max_ver


def get_capabilities(provider=None):
    """Resolves what the Octavia API offers to the provider

    The ovn provider implements none of the optional features but tags,
    regardless of the API version.

    :param provider: Octavia provider driver name
    :returns: `OctaviaCapabilities`
    """
    version = get_octavia_version()
    caps = obj_lbaas.OctaviaCapabilities(
        provider=provider,
        tags=version >= k_const.OCTAVIA_TAGGING_VERSION)

    if provider != k_const.OCTAVIA_PROVIDER_OVN:
        caps.timeouts = version >= k_const.OCTAVIA_TIMEOUT_VERSION
        caps.flavors = version >= k_const.OCTAVIA_FLAVORS_VERSION
        caps.vip_acl = version >= k_const.OCTAVIA_ACL_VERSION
        caps.availability_zones = version >= k_const.OCTAVIA_AZ_VERSION
        caps.http_monitors_on_udp = (
            version >= k_const.OCTAVIA_HTTP_MONITORS_ON_UDP_VERSION)

    if caps.tags:
        LOG.info('Octavia supports resource tags.')
    else:
        LOG.warning('Octavia API %d.%d does not support resource tagging, '
                    'load balancers cannot be shared between Services.',
                    *version)
    if caps.vip_acl:
        LOG.info('Octavia supports ACLs for %s provider.', provider)
    return caps


def get_load_balancer(loadbalancer_id):
    """Returns the load balancer or None if it does not exist"""
    lbaas = clients.get_loadbalancer_client()
    try:
        return lbaas.get_load_balancer(loadbalancer_id)
    except os_exc.NotFoundException:
        return None


def find_load_balancer(*names):
    """Looks up the single live load balancer carrying one of the names

    Names are checked in order, load balancers being deleted are ignored.

    :returns: openstacksdk LoadBalancer or None
    :raises MultipleResults: if more than one live load balancer matches
    """
    lbaas = clients.get_loadbalancer_client()
    found = {}
    names = [name for name in names if name]
    for name in names:
        for loadbalancer in lbaas.load_balancers(name=name):
            if loadbalancer.provisioning_status in _LIVE_STATUSES_EXCLUDED:
                continue
            found.setdefault(loadbalancer.id, loadbalancer)

    if len(found) > 1:
        raise k_exc.MultipleResults('load balancer', ' or '.join(names),
                                    sorted(found))
    for loadbalancer in found.values():
        LOG.debug('Found load balancer %(id)s named %(name)s',
                  {'id': loadbalancer.id, 'name': loadbalancer.name})
        return loadbalancer
    return None


def create_load_balancer(cancel=None, **request):
    lbaas = clients.get_loadbalancer_client()
    response = lbaas.create_load_balancer(**request)
    LOG.info('Created load balancer %(id)s named %(name)s',
             {'id': response.id, 'name': response.name})
    return waiter.wait_for_active(response.id, cancel)


def update_load_balancer_tags(loadbalancer_id, tags, cancel=None,
                              wait=True):
    lbaas = clients.get_loadbalancer_client()
    LOG.info('Updating tags of load balancer %(id)s to %(tags)s',
             {'id': loadbalancer_id, 'tags': tags})
    updated = lbaas.update_load_balancer(loadbalancer_id, tags=tags)
    if not wait:
        return updated
    return waiter.wait_for_active(loadbalancer_id, cancel)


def delete_load_balancer(loadbalancer_id, cascade=False, cancel=None):
    lbaas = clients.get_loadbalancer_client()
    LOG.info('Deleting load balancer %(id)s (cascade=%(cascade)s)',
             {'id': loadbalancer_id, 'cascade': cascade})
    lbaas.delete_load_balancer(loadbalancer_id, ignore_missing=True,
                               cascade=cascade)
    waiter.wait_for_deletion(loadbalancer_id, cancel)


def list_listeners(loadbalancer_id):
    lbaas = clients.get_loadbalancer_client()
    return list(lbaas.listeners(load_balancer_id=loadbalancer_id))


def create_listener(loadbalancer_id, cancel=None, **request):
    lbaas = clients.get_loadbalancer_client()
    listener = lbaas.create_listener(loadbalancer_id=loadbalancer_id,
                                     **request)
    LOG.info('Created listener %(id)s (%(protocol)s:%(port)s) on load '
             'balancer %(lb)s', {'id': listener.id,
                                 'protocol': request.get('protocol'),
                                 'port': request.get('protocol_port'),
                                 'lb': loadbalancer_id})
    waiter.wait_for_active(loadbalancer_id, cancel)
    return listener


def update_listener(loadbalancer_id, listener_id, cancel=None, **changes):
    lbaas = clients.get_loadbalancer_client()
    LOG.info('Updating listener %(id)s of load balancer %(lb)s with '
             '%(changes)s', {'id': listener_id, 'lb': loadbalancer_id,
                             'changes': changes})
    listener = lbaas.update_listener(listener_id, **changes)
    waiter.wait_for_active(loadbalancer_id, cancel)
    return listener


def delete_listener(loadbalancer_id, listener_id, cancel=None, wait=True):
    lbaas = clients.get_loadbalancer_client()
    LOG.info('Deleting listener %(id)s of load balancer %(lb)s',
             {'id': listener_id, 'lb': loadbalancer_id})
    lbaas.delete_listener(listener_id, ignore_missing=True)
    if wait:
        waiter.wait_for_active(loadbalancer_id, cancel)


def get_pool_by_listener(loadbalancer_id, listener_id):
    """Returns the pool attached to the listener or None"""
    lbaas = clients.get_loadbalancer_client()
    for pool in lbaas.pools(loadbalancer_id=loadbalancer_id):
        if listener_id in {lsnr['id'] for lsnr in pool.listeners or []}:
            return pool
    return None


def create_pool(loadbalancer_id, cancel=None, **request):
    lbaas = clients.get_loadbalancer_client()
    pool = lbaas.create_pool(loadbalancer_id=loadbalancer_id, **request)
    LOG.info('Created pool %(id)s (%(protocol)s) for listener %(lsnr)s',
             {'id': pool.id, 'protocol': request.get('protocol'),
              'lsnr': request.get('listener_id')})
    waiter.wait_for_active(loadbalancer_id, cancel)
    return pool


def delete_pool(loadbalancer_id, pool_id, cancel=None, wait=True):
    lbaas = clients.get_loadbalancer_client()
    # Deleting a pool deletes its members too.
    LOG.info('Deleting pool %(id)s of load balancer %(lb)s',
             {'id': pool_id, 'lb': loadbalancer_id})
    lbaas.delete_pool(pool_id, ignore_missing=True)
    if wait:
        waiter.wait_for_active(loadbalancer_id, cancel)


def list_members(pool_id):
    lbaas = clients.get_loadbalancer_client()
    return list(lbaas.members(pool_id))


def batch_update_members(loadbalancer_id, pool_id, members, cancel=None):
    """Replaces the whole member list of the pool in a single call

    :param members: list of member dicts in the Octavia API format
    """
    lbaas = clients.get_loadbalancer_client()
    LOG.info('Updating pool %(id)s to %(count)d members',
             {'id': pool_id, 'count': len(members)})
    response = lbaas.put('/lbaas/pools/%s/members' % pool_id,
                         json={'members': members})
    os_exc.raise_from_response(response)
    waiter.wait_for_active(loadbalancer_id, cancel)


def get_health_monitor(monitor_id):
    lbaas = clients.get_loadbalancer_client()
    try:
        return lbaas.get_health_monitor(monitor_id)
    except os_exc.NotFoundException:
        return None


def create_health_monitor(loadbalancer_id, cancel=None, **request):
    lbaas = clients.get_loadbalancer_client()
    monitor = lbaas.create_health_monitor(**request)
    LOG.info('Created health monitor %(id)s (%(type)s) for pool %(pool)s',
             {'id': monitor.id, 'type': request.get('type'),
              'pool': request.get('pool_id')})
    waiter.wait_for_active(loadbalancer_id, cancel)
    return monitor


def delete_health_monitor(loadbalancer_id, monitor_id, cancel=None,
                          wait=True):
    lbaas = clients.get_loadbalancer_client()
    LOG.info('Deleting health monitor %(id)s of load balancer %(lb)s',
             {'id': monitor_id, 'lb': loadbalancer_id})
    lbaas.delete_health_monitor(monitor_id, ignore_missing=True)
    if wait:
        waiter.wait_for_active(loadbalancer_id, cancel)
