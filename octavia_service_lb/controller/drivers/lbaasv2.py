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

from oslo_config import cfg
from oslo_log import log as logging

from octavia_service_lb import constants as k_const
from octavia_service_lb.controller.drivers import base
from octavia_service_lb.controller.drivers import octavia
from octavia_service_lb.controller.drivers import service_config
from octavia_service_lb.controller.drivers import waiter
from octavia_service_lb import exceptions as k_exc
from octavia_service_lb import utils

CONF = cfg.CONF
LOG = logging.getLogger(__name__)

_TIMEOUT_FIELDS = ('timeout_client_data', 'timeout_member_connect',
                   'timeout_member_data', 'timeout_tcp_inspect')


def _get_port_protocol(port):
    return port.get('protocol', k_const.LB_PROTOCOL_TCP)


def get_listener_protocol(port, svc_conf):
    if svc_conf.tls_container_ref:
        return k_const.LB_PROTOCOL_TERMINATED_HTTPS
    if svc_conf.keep_client_ip:
        return k_const.LB_PROTOCOL_HTTP
    return _get_port_protocol(port)


def get_pool_protocol(listener_protocol, svc_conf):
    if svc_conf.proxy_protocol:
        return k_const.LB_PROTOCOL_PROXY
    if svc_conf.keep_client_ip or svc_conf.tls_container_ref:
        return k_const.LB_PROTOCOL_HTTP
    return listener_protocol


def _listener_key(listener):
    return listener.protocol, listener.protocol_port


def _member_key(member):
    if isinstance(member, dict):
        return (member.get('name'), member['address'],
                member['protocol_port'], member.get('monitor_port'))
    return (member.name, member.address, member.protocol_port,
            member.monitor_port)


class LBaaSv2Driver(base.LBaaSDriver):
    """LBaaSv2Driver implements LBaaSDriver for the Octavia v2 API.

    The Octavia capabilities are probed once, when the driver is loaded.
    Every pass then re-reads the remote state it needs and only issues the
    mutations required to converge it, waiting for the load balancer to be
    ACTIVE again after each of them.
    """

    def __init__(self):
        super(LBaaSv2Driver, self).__init__()
        self._capabilities = octavia.get_capabilities(
            CONF.loadbalancer.lb_provider)
        self._builder = service_config.ServiceConfigBuilder(
            self._capabilities)
        self._drv_pub_ip = base.ServicePubIpDriver.get_instance()
        self._drv_sg = base.ServiceSecurityGroupsDriver.get_instance()

    def get_loadbalancer_name(self, cluster_name, service):
        return utils.get_lb_name(cluster_name, service)

    def get_loadbalancer(self, cluster_name, service):
        svc_conf = self._builder.build_for_delete(cluster_name, service)
        loadbalancer = self._find_loadbalancer(svc_conf)
        if loadbalancer is None:
            return None, False

        address = (self._drv_pub_ip.get_pub_ip(loadbalancer) or
                   loadbalancer.vip_address)
        return self._get_status(service, svc_conf, address), True

    def ensure_loadbalancer(self, cluster_name, service, nodes, cancel=None):
        self._check_enabled()
        LOG.info('Ensuring load balancer of Service %s',
                 utils.get_res_unique_name(service))
        svc_conf = self._builder.build(cluster_name, service, nodes)

        loadbalancer, owned = self._ensure_loadbalancer(
            cluster_name, service, svc_conf, cancel)
        loadbalancer = waiter.wait_for_active(loadbalancer.id, cancel)

        listeners = octavia.list_listeners(loadbalancer.id)
        self._check_listener_ports(service, svc_conf, loadbalancer,
                                   listeners, owned)
        old_listeners = {_listener_key(lsnr): lsnr for lsnr in listeners
                         if self._is_our_listener(lsnr, svc_conf, owned)}

        for index, port in enumerate(utils.get_service_ports(service)):
            listener = self._ensure_listener(loadbalancer, index, port,
                                             svc_conf, old_listeners, cancel)
            self._ensure_pool(loadbalancer, index, port, listener, service,
                              svc_conf, nodes, cancel)
            old_listeners.pop(_listener_key(listener), None)

        # Ports removed from the Service since the last pass.
        self._release_listeners(loadbalancer.id, list(old_listeners.values()),
                                cancel)

        address = self._drv_pub_ip.acquire_service_pub_ip_info(
            cluster_name, service, svc_conf, loadbalancer)

        utils.set_annotation(service, k_const.K8S_ANNOTATION_LOAD_BALANCER_ID,
                             loadbalancer.id)
        tags = list(loadbalancer.tags or [])
        if svc_conf.supports_tags and svc_conf.lb_name not in tags:
            loadbalancer = octavia.update_load_balancer_tags(
                loadbalancer.id, tags + [svc_conf.lb_name], cancel)

        status = self._get_status(service, svc_conf, address)

        if CONF.loadbalancer.manage_security_groups:
            self._drv_sg.ensure_security_groups(
                cluster_name, service, svc_conf, loadbalancer, nodes,
                self._capabilities)
        return status

    def update_loadbalancer(self, cluster_name, service, nodes, cancel=None):
        self._check_enabled()
        LOG.info('Updating load balancer of Service %s',
                 utils.get_res_unique_name(service))
        svc_conf = self._builder.build_for_update(cluster_name, service,
                                                  nodes)

        loadbalancer = self._find_loadbalancer(svc_conf)
        if loadbalancer is None:
            raise k_exc.ResourceNotFound(
                'Load balancer', svc_conf.lb_id or svc_conf.lb_name)
        loadbalancer = waiter.wait_for_active(loadbalancer.id, cancel)

        owned = self._is_owner(loadbalancer, svc_conf)
        listeners = {_listener_key(lsnr): lsnr
                     for lsnr in octavia.list_listeners(loadbalancer.id)
                     if self._is_our_listener(lsnr, svc_conf, owned)}

        for index, port in enumerate(utils.get_service_ports(service)):
            protocol = get_listener_protocol(port, svc_conf)
            listener = listeners.get((protocol, port['port']))
            if listener is None:
                raise k_exc.ResourceNotFound(
                    'Listener', '%s:%s of load balancer %s' % (
                        protocol, port['port'], loadbalancer.id))
            self._ensure_pool(loadbalancer, index, port, listener, service,
                              svc_conf, nodes, cancel)

        if CONF.loadbalancer.manage_security_groups:
            self._drv_sg.ensure_security_groups(
                cluster_name, service, svc_conf, loadbalancer, nodes,
                self._capabilities)

    def ensure_loadbalancer_deleted(self, cluster_name, service, cancel=None):
        self._check_enabled()
        svc_conf = self._builder.build_for_delete(cluster_name, service)
        loadbalancer = self._find_loadbalancer(svc_conf)
        if loadbalancer is None:
            LOG.debug('Load balancer of Service %s does not exist',
                      utils.get_res_unique_name(service))
            self._release_security_groups(service)
            return

        # An ERROR load balancer never becomes ACTIVE, it is torn down as is.
        wait = loadbalancer.provisioning_status != k_const.LB_STATUS_ERROR
        if wait:
            loadbalancer = waiter.wait_for_active(loadbalancer.id, cancel)

        lb_name = svc_conf.lb_name
        created_by_us = (loadbalancer.name or '').startswith(
            k_const.LB_NAME_PREFIX)
        update_tags = False
        shared = False
        if svc_conf.supports_tags:
            for tag in loadbalancer.tags or []:
                if tag == lb_name:
                    update_tags = True
                elif tag.startswith(k_const.LB_NAME_PREFIX):
                    shared = True
        delete_lb = created_by_us and not shared
        LOG.debug('Deleting Service %(svc)s: delete_lb=%(delete)s, '
                  'shared=%(shared)s, created_by_us=%(ours)s',
                  {'svc': utils.get_res_unique_name(service),
                   'delete': delete_lb, 'shared': shared,
                   'ours': created_by_us})

        if delete_lb:
            self._drv_pub_ip.release_pub_ip(service, loadbalancer)

        if delete_lb and CONF.loadbalancer.cascade_delete:
            octavia.delete_load_balancer(loadbalancer.id, cascade=True,
                                         cancel=cancel)
        else:
            listeners = octavia.list_listeners(loadbalancer.id)
            if not delete_lb:
                listeners = self._get_service_listeners(service, svc_conf,
                                                        listeners)
            self._release_listeners(loadbalancer.id, listeners, cancel,
                                    wait=wait)
            if delete_lb:
                octavia.delete_load_balancer(loadbalancer.id, cancel=cancel)

        if not delete_lb and update_tags:
            tags = [tag for tag in loadbalancer.tags if tag != lb_name]
            octavia.update_load_balancer_tags(loadbalancer.id, tags, cancel,
                                              wait=wait)

        self._release_security_groups(service)

    def _check_enabled(self):
        if not CONF.loadbalancer.enabled:
            raise k_exc.ImplementedElsewhere()

    def _release_security_groups(self, service):
        if CONF.loadbalancer.manage_security_groups:
            self._drv_sg.release_security_groups(service)

    def _find_loadbalancer(self, svc_conf):
        if svc_conf.lb_id:
            return octavia.get_load_balancer(svc_conf.lb_id)
        return octavia.find_load_balancer(svc_conf.lb_name,
                                          svc_conf.lb_legacy_name)

    def _is_owner(self, loadbalancer, svc_conf):
        return loadbalancer.name in (svc_conf.lb_name,
                                     svc_conf.lb_legacy_name)

    def _is_our_listener(self, listener, svc_conf, owned):
        tags = listener.tags or []
        return svc_conf.lb_name in tags or (not tags and owned)

    def _ensure_loadbalancer(self, cluster_name, service, svc_conf, cancel):
        if svc_conf.lb_id:
            loadbalancer = octavia.get_load_balancer(svc_conf.lb_id)
            if loadbalancer is None:
                raise k_exc.ResourceNotFound('Load balancer', svc_conf.lb_id)
            owned = self._is_owner(loadbalancer, svc_conf)
            if not owned:
                self._check_shareable(service, svc_conf, loadbalancer)
            return loadbalancer, owned

        loadbalancer = octavia.find_load_balancer(svc_conf.lb_name,
                                                  svc_conf.lb_legacy_name)
        if loadbalancer is None:
            loadbalancer = octavia.create_load_balancer(
                cancel, **self._get_loadbalancer_request(
                    cluster_name, service, svc_conf))
        return loadbalancer, True

    def _check_shareable(self, service, svc_conf, loadbalancer):
        if not svc_conf.supports_tags:
            raise k_exc.SharedLoadBalancerError(
                'Load balancer %s cannot be shared by Service %s, Octavia '
                'does not support resource tags' % (
                    loadbalancer.id, utils.get_res_unique_name(service)))

        tags = loadbalancer.tags or []
        if svc_conf.lb_name in tags:
            return
        sharing = [tag for tag in tags
                   if tag.startswith(k_const.LB_NAME_PREFIX)]
        if len(sharing) + 1 > CONF.loadbalancer.max_shared_lb:
            raise k_exc.SharedLoadBalancerError(
                'Load balancer %s is already shared by %d Services, the '
                'maximum is %d' % (loadbalancer.id, len(sharing),
                                   CONF.loadbalancer.max_shared_lb))

    def _get_loadbalancer_request(self, cluster_name, service, svc_conf):
        request = {
            'name': svc_conf.lb_name,
            'description': k_const.LB_DESCRIPTION % {
                'service': utils.get_res_unique_name(service),
                'cluster': cluster_name},
            'provider': CONF.loadbalancer.lb_provider,
        }
        if svc_conf.supports_tags:
            request['tags'] = [svc_conf.lb_name]
        if svc_conf.flavor_id:
            request['flavor_id'] = svc_conf.flavor_id
        if svc_conf.availability_zone:
            request['availability_zone'] = svc_conf.availability_zone

        if svc_conf.vip_port_id:
            request['vip_port_id'] = svc_conf.vip_port_id
        else:
            if svc_conf.subnet_id:
                request['vip_subnet_id'] = svc_conf.subnet_id
            if svc_conf.network_id:
                request['vip_network_id'] = svc_conf.network_id

        lb_ip = service['spec'].get('loadBalancerIP')
        if svc_conf.internal and lb_ip:
            request['vip_address'] = lb_ip
        return request

    def _check_listener_ports(self, service, svc_conf, loadbalancer,
                              listeners, owned):
        listeners = {_listener_key(lsnr): lsnr for lsnr in listeners}
        for port in utils.get_service_ports(service):
            key = (get_listener_protocol(port, svc_conf), port['port'])
            listener = listeners.get(key)
            if (listener is not None and
                    not self._is_our_listener(listener, svc_conf, owned)):
                raise k_exc.ListenerPortConflict(loadbalancer.id,
                                                 port['port'])

    def _get_service_listeners(self, service, svc_conf, listeners):
        listeners = {_listener_key(lsnr): lsnr for lsnr in listeners}
        found = []
        for port in utils.get_service_ports(service):
            key = (get_listener_protocol(port, svc_conf), port['port'])
            listener = listeners.get(key)
            if listener is not None and svc_conf.lb_name in (listener.tags
                                                             or []):
                found.append(listener)
        return found

    def _get_listener_request(self, index, port, svc_conf):
        request = {
            'name': utils.get_listener_name(index, svc_conf.lb_name),
            'protocol': get_listener_protocol(port, svc_conf),
            'protocol_port': port['port'],
            'connection_limit': svc_conf.connection_limit,
        }
        if svc_conf.supports_tags:
            request['tags'] = [svc_conf.lb_name]
        if svc_conf.keep_client_ip:
            request['insert_headers'] = {
                k_const.LB_HEADER_X_FORWARDED_FOR: 'true'}
        if svc_conf.tls_container_ref:
            request['default_tls_container_ref'] = svc_conf.tls_container_ref
        for field in _TIMEOUT_FIELDS:
            if getattr(svc_conf, field) is not None:
                request[field] = getattr(svc_conf, field)
        if svc_conf.allowed_cidrs:
            request['allowed_cidrs'] = list(svc_conf.allowed_cidrs)
        return request

    def _get_listener_changes(self, listener, svc_conf):
        changes = {}
        tags = list(listener.tags or [])
        if svc_conf.supports_tags and svc_conf.lb_name not in tags:
            changes['tags'] = tags + [svc_conf.lb_name]

        if listener.connection_limit != svc_conf.connection_limit:
            changes['connection_limit'] = svc_conf.connection_limit

        headers = dict(listener.insert_headers or {})
        forwarded_for = headers.get(k_const.LB_HEADER_X_FORWARDED_FOR)
        if svc_conf.keep_client_ip and forwarded_for != 'true':
            headers[k_const.LB_HEADER_X_FORWARDED_FOR] = 'true'
            changes['insert_headers'] = headers
        elif not svc_conf.keep_client_ip and forwarded_for is not None:
            headers.pop(k_const.LB_HEADER_X_FORWARDED_FOR)
            changes['insert_headers'] = headers

        if (svc_conf.tls_container_ref and
                listener.default_tls_container_ref !=
                svc_conf.tls_container_ref):
            changes['default_tls_container_ref'] = svc_conf.tls_container_ref

        for field in _TIMEOUT_FIELDS:
            desired = getattr(svc_conf, field)
            if desired is not None and getattr(listener, field) != desired:
                changes[field] = desired

        if (svc_conf.allowed_cidrs and
                sorted(listener.allowed_cidrs or []) !=
                sorted(svc_conf.allowed_cidrs)):
            changes['allowed_cidrs'] = list(svc_conf.allowed_cidrs)
        return changes

    def _ensure_listener(self, loadbalancer, index, port, svc_conf,
                         listeners, cancel):
        protocol = get_listener_protocol(port, svc_conf)
        listener = listeners.get((protocol, port['port']))
        if listener is None:
            return octavia.create_listener(
                loadbalancer.id, cancel,
                **self._get_listener_request(index, port, svc_conf))

        changes = self._get_listener_changes(listener, svc_conf)
        if not changes:
            LOG.debug('Listener %(id)s for %(protocol)s:%(port)s is up to '
                      'date', {'id': listener.id, 'protocol': protocol,
                               'port': port['port']})
            return listener
        return octavia.update_listener(loadbalancer.id, listener.id, cancel,
                                       **changes)

    def _ensure_pool(self, loadbalancer, index, port, listener, service,
                     svc_conf, nodes, cancel):
        protocol = get_pool_protocol(listener.protocol, svc_conf)
        pool = octavia.get_pool_by_listener(loadbalancer.id, listener.id)
        if pool is not None and pool.protocol != protocol:
            LOG.info('Pool %(id)s has protocol %(current)s instead of '
                     '%(desired)s, recreating it',
                     {'id': pool.id, 'current': pool.protocol,
                      'desired': protocol})
            octavia.delete_pool(loadbalancer.id, pool.id, cancel)
            pool = None

        if pool is None:
            request = {
                'name': utils.get_pool_name(index, svc_conf.lb_name),
                'protocol': protocol,
                'lb_algorithm': CONF.loadbalancer.lb_method,
                'listener_id': listener.id,
            }
            if (service['spec'].get('sessionAffinity') ==
                    k_const.K8S_SERVICE_AFFINITY_CLIENT_IP):
                request['session_persistence'] = {
                    'type': k_const.LB_SESSION_PERSISTENCE_SOURCE_IP}
            pool = octavia.create_pool(loadbalancer.id, cancel, **request)

        self._ensure_members(loadbalancer, pool, port, svc_conf, nodes,
                             cancel)
        self._ensure_health_monitor(loadbalancer, index, pool, port,
                                    svc_conf, cancel)
        return pool

    def _use_health_check_node_port(self, port, svc_conf):
        if svc_conf.health_check_node_port <= 0:
            return False
        if self._capabilities.provider == k_const.OCTAVIA_PROVIDER_OVN:
            return False
        return (_get_port_protocol(port) != k_const.LB_PROTOCOL_UDP or
                self._capabilities.http_monitors_on_udp)

    def _get_members(self, loadbalancer, port, svc_conf, nodes):
        subnet_id = svc_conf.member_subnet_id or loadbalancer.vip_subnet_id
        use_hcnp = self._use_health_check_node_port(port, svc_conf)
        members = []
        for node in nodes:
            name = node['metadata']['name']
            try:
                address = utils.get_node_address(node, svc_conf.ip_family)
            except k_exc.NodeAddressNotFound:
                LOG.warning('Failed to get the address of node %s, it is '
                            'not added to the pool', name)
                continue
            member = {
                'name': name,
                'address': address,
                'protocol_port': port['nodePort'],
                'subnet_id': subnet_id,
            }
            if use_hcnp:
                member['monitor_port'] = svc_conf.health_check_node_port
            members.append(member)
        return members

    def _ensure_members(self, loadbalancer, pool, port, svc_conf, nodes,
                        cancel):
        members = self._get_members(loadbalancer, port, svc_conf, nodes)
        current = {_member_key(m) for m in octavia.list_members(pool.id)}
        if current == {_member_key(m) for m in members}:
            LOG.debug('Members of pool %s are up to date', pool.id)
            return
        octavia.batch_update_members(loadbalancer.id, pool.id, members,
                                     cancel)

    def _get_health_monitor_request(self, index, pool, port, svc_conf):
        request = {
            'name': utils.get_monitor_name(index, svc_conf.lb_name),
            'pool_id': pool.id,
            'type': _get_port_protocol(port),
            'delay': svc_conf.monitor_delay,
            'timeout': svc_conf.monitor_timeout,
            'max_retries': svc_conf.monitor_max_retries,
        }
        if request['type'] == k_const.LB_PROTOCOL_UDP:
            request['type'] = k_const.HM_TYPE_UDP_CONNECT
        if self._use_health_check_node_port(port, svc_conf):
            request.update({'type': k_const.HM_TYPE_HTTP,
                            'url_path': k_const.HM_HTTP_URL_PATH,
                            'http_method': k_const.HM_HTTP_METHOD,
                            'expected_codes': k_const.HM_HTTP_EXPECTED_CODES})
        return request

    def _ensure_health_monitor(self, loadbalancer, index, pool, port,
                               svc_conf, cancel):
        desired = None
        if svc_conf.enable_monitor:
            desired = self._get_health_monitor_request(index, pool, port,
                                                       svc_conf)

        monitor = None
        if pool.health_monitor_id:
            monitor = octavia.get_health_monitor(pool.health_monitor_id)
        if monitor is not None:
            if desired is not None and all(
                    getattr(monitor, field) == desired[field]
                    for field in ('type', 'delay', 'timeout',
                                  'max_retries')):
                return
            octavia.delete_health_monitor(loadbalancer.id, monitor.id,
                                          cancel)

        if desired is not None:
            octavia.create_health_monitor(loadbalancer.id, cancel, **desired)

    def _release_listeners(self, loadbalancer_id, listeners, cancel,
                           wait=True):
        pools = []
        for listener in listeners:
            pool = octavia.get_pool_by_listener(loadbalancer_id, listener.id)
            if pool is not None:
                pools.append(pool)

        for pool in pools:
            if pool.health_monitor_id:
                octavia.delete_health_monitor(loadbalancer_id,
                                              pool.health_monitor_id, cancel,
                                              wait=wait)
        for pool in pools:
            octavia.delete_pool(loadbalancer_id, pool.id, cancel, wait=wait)
        for listener in listeners:
            octavia.delete_listener(loadbalancer_id, listener.id, cancel,
                                    wait=wait)

    def _get_status(self, service, svc_conf, address):
        hostname = utils.get_annotation_string(
            service, k_const.K8S_ANNOTATION_HOSTNAME)
        if hostname:
            return {'ingress': [{'hostname': hostname}]}
        if (svc_conf.proxy_protocol and
                CONF.loadbalancer.enable_ingress_hostname):
            return {'ingress': [{'hostname': '%s.%s' % (
                address, CONF.loadbalancer.ingress_hostname_suffix)}]}
        return {'ingress': [{'ip': address}]}
