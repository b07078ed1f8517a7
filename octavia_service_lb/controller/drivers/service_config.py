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

from octavia_service_lb import config
from octavia_service_lb import constants as k_const
from octavia_service_lb.controller.drivers import network
from octavia_service_lb import exceptions as k_exc
from octavia_service_lb.objects import lbaas as obj_lbaas
from octavia_service_lb import utils

CONF = cfg.CONF
LOG = logging.getLogger(__name__)

_DEFAULT_TIMEOUT_CLIENT_DATA = 50000
_DEFAULT_TIMEOUT_MEMBER_CONNECT = 5000
_DEFAULT_TIMEOUT_MEMBER_DATA = 50000
_DEFAULT_TIMEOUT_TCP_INSPECT = 0


class ServiceConfigBuilder(object):
    """Derives the `ServiceConfig` of a reconciliation pass.

    Every setting is resolved from the Service annotation first, then from
    the load balancer class the Service selects and last from the
    [loadbalancer] configuration. Settings gated by a capability the Octavia
    API lacks are left unset.

    All validation happens before the first remote call, so an invalid
    Service never leaves anything behind.
    """

    def __init__(self, capabilities):
        self._capabilities = capabilities

    def build(self, cluster_name, service, nodes):
        """Builds the configuration for creating or updating everything

        :raises NoBackendsError: if there are no nodes
        :raises NoPortsError: if the Service has no ports
        :raises ConflictingModeError: if both proxy protocol and
                                      X-Forwarded-For are requested
        :raises InvalidLoadBalancerClass: if the class is not configured
        :raises InvalidSourceRange: if a source range is not a CIDR
        """
        if not nodes:
            raise k_exc.NoBackendsError(service)
        if not utils.get_service_ports(service):
            raise k_exc.NoPortsError(service)

        svc_conf = self._build_common(cluster_name, service)
        self._check_modes(svc_conf)
        lb_class = self._get_lb_class(service, svc_conf)
        source_ranges = utils.get_source_ranges(service, svc_conf.ip_family)
        svc_conf.internal = self._is_internal(service, svc_conf.ip_family)
        svc_conf.connection_limit = utils.get_annotation_int(
            service, k_const.K8S_ANNOTATION_CONNECTION_LIMIT, -1)
        svc_conf.vip_port_id = utils.get_annotation_string(
            service, k_const.K8S_ANNOTATION_PORT_ID) or None

        svc_conf.network_id = self._resolve(
            service, k_const.K8S_ANNOTATION_NETWORK_ID, lb_class,
            'network_id')
        svc_conf.subnet_id = self._resolve(
            service, k_const.K8S_ANNOTATION_SUBNET_ID, lb_class, 'subnet_id')
        if not svc_conf.network_id and not svc_conf.subnet_id:
            svc_conf.subnet_id = network.get_node_subnet_id(
                nodes[0], svc_conf.ip_family)
            LOG.debug('Inferred subnet %(subnet)s of node %(node)s for '
                      'Service %(svc)s',
                      {'subnet': svc_conf.subnet_id,
                       'node': nodes[0]['metadata']['name'],
                       'svc': utils.get_res_unique_name(service)})
        svc_conf.member_subnet_id = (
            self._resolve(service, k_const.K8S_ANNOTATION_MEMBER_SUBNET_ID,
                          lb_class, 'member_subnet_id') or
            svc_conf.subnet_id)

        if svc_conf.internal:
            LOG.debug('Ensuring an internal load balancer for Service %s',
                      utils.get_res_unique_name(service))
        else:
            self._set_floating(service, svc_conf, lb_class)

        if self._capabilities.timeouts:
            svc_conf.timeout_client_data = utils.get_annotation_int(
                service, k_const.K8S_ANNOTATION_TIMEOUT_CLIENT_DATA,
                _DEFAULT_TIMEOUT_CLIENT_DATA)
            svc_conf.timeout_member_connect = utils.get_annotation_int(
                service, k_const.K8S_ANNOTATION_TIMEOUT_MEMBER_CONNECT,
                _DEFAULT_TIMEOUT_MEMBER_CONNECT)
            svc_conf.timeout_member_data = utils.get_annotation_int(
                service, k_const.K8S_ANNOTATION_TIMEOUT_MEMBER_DATA,
                _DEFAULT_TIMEOUT_MEMBER_DATA)
            svc_conf.timeout_tcp_inspect = utils.get_annotation_int(
                service, k_const.K8S_ANNOTATION_TIMEOUT_TCP_INSPECT,
                _DEFAULT_TIMEOUT_TCP_INSPECT)

        self._set_source_ranges(service, svc_conf, source_ranges)

        if self._capabilities.flavors:
            svc_conf.flavor_id = utils.get_annotation_string(
                service, k_const.K8S_ANNOTATION_FLAVOR_ID,
                CONF.loadbalancer.flavor_id) or None

        availability_zone = utils.get_annotation_string(
            service, k_const.K8S_ANNOTATION_AVAILABILITY_ZONE,
            CONF.loadbalancer.availability_zone)
        if self._capabilities.availability_zones:
            svc_conf.availability_zone = availability_zone or None
        elif availability_zone:
            LOG.warning('Load balancer availability zones are not supported, '
                        'Octavia API 2.14 or later is required. Ignoring '
                        '%s', availability_zone)

        self._set_monitor(service, svc_conf)
        return svc_conf

    def build_for_update(self, cluster_name, service, nodes):
        """Builds the configuration for converging members and firewall

        :raises NoPortsError: if the Service has no ports
        :raises ConflictingModeError: if both proxy protocol and
                                      X-Forwarded-For are requested
        """
        if not utils.get_service_ports(service):
            raise k_exc.NoPortsError(service)

        svc_conf = self._build_common(cluster_name, service)
        self._check_modes(svc_conf)
        lb_class = self._get_lb_class(service, svc_conf)
        source_ranges = utils.get_source_ranges(service, svc_conf.ip_family)

        svc_conf.member_subnet_id = self._resolve(
            service, k_const.K8S_ANNOTATION_MEMBER_SUBNET_ID, lb_class,
            'member_subnet_id')
        if not svc_conf.member_subnet_id:
            svc_conf.member_subnet_id = self._resolve(
                service, k_const.K8S_ANNOTATION_SUBNET_ID, lb_class,
                'subnet_id')
        if not svc_conf.member_subnet_id and nodes:
            svc_conf.member_subnet_id = network.get_node_subnet_id(
                nodes[0], svc_conf.ip_family)

        self._set_source_ranges(service, svc_conf, source_ranges)
        self._set_monitor(service, svc_conf)
        return svc_conf

    def build_for_delete(self, cluster_name, service):
        """Builds the configuration needed to find what to release

        Nothing is validated, a Service must always be deletable.
        """
        return self._build_common(cluster_name, service)

    def _build_common(self, cluster_name, service):
        svc_conf = obj_lbaas.ServiceConfig(
            lb_name=utils.get_lb_name(cluster_name, service),
            lb_legacy_name=utils.get_lb_legacy_name(service),
            ip_family=utils.get_preferred_ip_family(service),
            supports_tags=self._capabilities.tags)
        svc_conf.lb_id = utils.get_annotation_string(
            service, k_const.K8S_ANNOTATION_LOAD_BALANCER_ID) or None
        svc_conf.keep_client_ip = utils.get_annotation_bool(
            service, k_const.K8S_ANNOTATION_X_FORWARDED_FOR, False)
        svc_conf.proxy_protocol = utils.get_annotation_bool(
            service, k_const.K8S_ANNOTATION_PROXY_PROTOCOL, False)
        svc_conf.tls_container_ref = utils.get_annotation_string(
            service, k_const.K8S_ANNOTATION_TLS_CONTAINER_REF,
            CONF.loadbalancer.default_tls_container_ref) or None
        return svc_conf

    def _check_modes(self, svc_conf):
        if svc_conf.proxy_protocol and svc_conf.keep_client_ip:
            raise k_exc.ConflictingModeError(
                k_const.K8S_ANNOTATION_PROXY_PROTOCOL,
                k_const.K8S_ANNOTATION_X_FORWARDED_FOR)

    def _get_lb_class(self, service, svc_conf):
        class_name = utils.get_annotation_string(
            service, k_const.K8S_ANNOTATION_CLASS)
        if not class_name:
            return None
        lb_class = config.get_lb_class(class_name)
        if lb_class is None:
            raise k_exc.InvalidLoadBalancerClass(class_name)
        svc_conf.class_name = class_name
        LOG.debug('Using load balancer class %(class)s for Service %(svc)s',
                  {'class': class_name,
                   'svc': utils.get_res_unique_name(service)})
        return lb_class

    def _resolve(self, service, annotation, lb_class, option):
        value = utils.get_annotation_string(service, annotation)
        if value:
            return value
        if lb_class is not None and lb_class[option]:
            return lb_class[option]
        return CONF.loadbalancer[option]

    def _is_internal(self, service, ip_family):
        if CONF.loadbalancer.internal_lb:
            return True
        # Floating IPs are not supported in IPv6 networks.
        if ip_family == k_const.K8S_IP_FAMILY_IPV6:
            return True
        return utils.get_annotation_bool(
            service, k_const.K8S_ANNOTATION_INTERNAL_LB, False)

    def _set_floating(self, service, svc_conf, lb_class):
        network_id = self._resolve(
            service, k_const.K8S_ANNOTATION_FLOATING_NETWORK_ID, lb_class,
            'floating_network_id')
        if not network_id:
            network_id = network.get_external_network_id()
            if not network_id:
                LOG.warning('Failed to find a floating network for Service '
                            '%s', utils.get_res_unique_name(service))

        subnet_spec = self._get_floating_subnet_spec(service, lb_class)
        if network_id and subnet_spec.subnet_id:
            subnet = network.get_subnet(subnet_spec.subnet_id)
            if subnet.network_id != network_id:
                raise k_exc.InvalidServiceConfiguration(
                    "Floating IP subnet %s doesn't belong to the network %s"
                    % (subnet_spec.subnet_id, network_id))

        svc_conf.floating_network_id = network_id
        if subnet_spec.is_configured():
            LOG.debug('Using floating subnet spec %(spec)s for %(svc)s',
                      {'spec': subnet_spec,
                       'svc': utils.get_res_unique_name(service)})
            svc_conf.floating_subnet = subnet_spec

    def _get_floating_subnet_spec(self, service, lb_class):
        specs = [obj_lbaas.FloatingSubnetSpec(
            subnet_id=utils.get_annotation_string(
                service, k_const.K8S_ANNOTATION_FLOATING_SUBNET_ID) or None,
            subnet=utils.get_annotation_string(
                service, k_const.K8S_ANNOTATION_FLOATING_SUBNET) or None,
            subnet_tags=utils.get_annotation_string(
                service, k_const.K8S_ANNOTATION_FLOATING_SUBNET_TAGS) or None)]
        if lb_class is not None:
            specs.append(self._get_conf_subnet_spec(lb_class))
        specs.append(self._get_conf_subnet_spec(CONF.loadbalancer))

        for spec in specs:
            if spec.is_configured():
                return spec
        return specs[-1]

    def _get_conf_subnet_spec(self, group):
        return obj_lbaas.FloatingSubnetSpec(
            subnet_id=group.floating_subnet_id or None,
            subnet=group.floating_subnet or None,
            subnet_tags=group.floating_subnet_tags or None)

    def _set_source_ranges(self, service, svc_conf, source_ranges):
        svc_conf.source_ranges = source_ranges
        if self._capabilities.vip_acl:
            svc_conf.allowed_cidrs = source_ranges
        elif (not utils.is_allow_all(source_ranges) and
                not CONF.loadbalancer.manage_security_groups):
            LOG.warning('Source ranges of Service %s are ignored, Octavia '
                        'does not support listener ACLs and security groups '
                        'are not managed', utils.get_res_unique_name(service))

    def _set_monitor(self, service, svc_conf):
        svc_conf.enable_monitor = utils.get_annotation_bool(
            service, k_const.K8S_ANNOTATION_ENABLE_HEALTH_MONITOR,
            CONF.loadbalancer.create_monitor)
        spec = service['spec']
        health_check_node_port = spec.get('healthCheckNodePort') or 0
        if (svc_conf.enable_monitor and
                spec.get('externalTrafficPolicy') ==
                k_const.K8S_SERVICE_TRAFFIC_POLICY_LOCAL and
                health_check_node_port > 0):
            svc_conf.health_check_node_port = health_check_node_port
        svc_conf.monitor_delay = utils.get_annotation_int(
            service, k_const.K8S_ANNOTATION_HEALTH_MONITOR_DELAY,
            CONF.loadbalancer.monitor_delay)
        svc_conf.monitor_timeout = utils.get_annotation_int(
            service, k_const.K8S_ANNOTATION_HEALTH_MONITOR_TIMEOUT,
            CONF.loadbalancer.monitor_timeout)
        svc_conf.monitor_max_retries = utils.get_annotation_int(
            service, k_const.K8S_ANNOTATION_HEALTH_MONITOR_MAX_RETRIES,
            CONF.loadbalancer.monitor_max_retries)
