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
from octavia_service_lb.controller.drivers import network
from octavia_service_lb import utils

CONF = cfg.CONF
LOG = logging.getLogger(__name__)


def _get_ethertype(cidr):
    if utils.get_ip_version(cidr) == k_const.IP_VERSION_6:
        return k_const.SG_ETHERTYPE_IPV6
    return k_const.SG_ETHERTYPE_IPV4


def _get_port_protocol(port):
    return port.get('protocol', k_const.LB_PROTOCOL_TCP).lower()


def _get_node_ports(service):
    """Returns the (protocol, port) pairs nodes receive the traffic on"""
    node_ports = set()
    for port in utils.get_service_ports(service):
        if port.get('nodePort'):
            node_ports.add((_get_port_protocol(port), port['nodePort']))
    health_check_node_port = service['spec'].get('healthCheckNodePort')
    if health_check_node_port:
        node_ports.add((k_const.LB_PROTOCOL_TCP.lower(),
                        health_check_node_port))
    return node_ports


def _rule_key(rule):
    return (rule.ether_type, rule.protocol, rule.port_range_min,
            rule.port_range_max, rule.remote_ip_prefix)


class LoadBalancerSecurityGroupsDriver(base.ServiceSecurityGroupsDriver):
    """Manages the security group of a Service load balancer.

    Each Service gets its own group holding the ingress rules for the
    listener ports from every source range (unless Octavia enforces them
    with listener ACLs) and the ICMP rules path MTU discovery relies on. The
    group is attached to the VIP port.

    How the nodes are opened depends on [loadbalancer]node_security_mode. In
    "subnet_cidr" mode the group also allows the member subnet to reach the
    node ports and is added to every port of the backend nodes. In
    "remote_group" mode the groups of the node ports get rules allowing the
    node ports from the load balancer group.

    Ports the group was added to are tagged with the group ID so they can be
    found again when nodes leave the backend set or the Service is deleted.
    """

    def ensure_security_groups(self, cluster_name, service, svc_conf,
                               loadbalancer, nodes, capabilities):
        sg_id = self._ensure_security_group(cluster_name, service)
        subnet_cidr_mode = (CONF.loadbalancer.node_security_mode ==
                            k_const.NODE_SG_MODE_SUBNET_CIDR)

        member_cidr = None
        if subnet_cidr_mode:
            member_cidr = network.get_subnet_cidr(
                svc_conf.member_subnet_id or loadbalancer.vip_subnet_id)
        self._sync_rules(sg_id, self._get_lb_rules(
            service, svc_conf, capabilities, member_cidr))

        vip_port = network.get_port(loadbalancer.vip_port_id)
        self._attach(vip_port, sg_id)

        if subnet_cidr_mode:
            self._sync_node_ports(sg_id, nodes, vip_port.id)
        else:
            self._sync_node_rules(sg_id, service, svc_conf, nodes)
        return sg_id

    def release_security_groups(self, service):
        name = utils.get_sg_name(service)
        sg = network.find_security_group(name)
        if sg is None:
            LOG.debug('Security group %s already deleted', name)
            return

        for port in network.list_ports(tags=sg.id):
            self._detach(port, sg.id)
        for rule in network.list_security_group_rules(remote_group_id=sg.id):
            network.delete_security_group_rule(rule.id)
        network.delete_security_group(sg.id)

    def _ensure_security_group(self, cluster_name, service):
        name = utils.get_sg_name(service)
        sg = network.find_security_group(name)
        if sg is None:
            description = k_const.SG_DESCRIPTION % {
                'service': utils.get_res_unique_name(service),
                'cluster': cluster_name}
            sg = network.create_security_group(name, description)
        return sg.id

    def _get_lb_rules(self, service, svc_conf, capabilities, member_cidr):
        rules = set(k_const.SG_ICMP_PMTU_RULES)

        if not capabilities.vip_acl:
            for port in utils.get_service_ports(service):
                protocol = _get_port_protocol(port)
                for cidr in svc_conf.source_ranges:
                    rules.add((_get_ethertype(cidr), protocol, port['port'],
                               port['port'], cidr))

        if member_cidr:
            ethertype = _get_ethertype(member_cidr)
            for protocol, node_port in _get_node_ports(service):
                rules.add((ethertype, protocol, node_port, node_port,
                           member_cidr))
        return rules

    def _sync_rules(self, sg_id, desired):
        current = set()
        for rule in network.list_security_group_rules(
                security_group_id=sg_id,
                direction=k_const.SG_RULE_DIRECTION_INGRESS):
            key = _rule_key(rule)
            if key in desired and key not in current:
                current.add(key)
                continue
            network.delete_security_group_rule(rule.id)

        for ethertype, protocol, port_min, port_max, cidr in sorted(
                desired - current):
            network.create_security_group_rule(
                security_group_id=sg_id,
                direction=k_const.SG_RULE_DIRECTION_INGRESS,
                ether_type=ethertype,
                protocol=protocol,
                port_range_min=port_min,
                port_range_max=port_max,
                remote_ip_prefix=cidr)

    def _sync_node_ports(self, sg_id, nodes, vip_port_id):
        desired = {}
        for node in nodes:
            for port in network.get_attached_ports(node):
                desired[port.id] = port

        for port in desired.values():
            self._attach(port, sg_id)

        for port in network.list_ports(tags=sg_id):
            if port.id in desired or port.id == vip_port_id:
                continue
            LOG.debug('Port %(port)s does not belong to a backend node '
                      'anymore, detaching %(sg)s', {'port': port.id,
                                                    'sg': sg_id})
            self._detach(port, sg_id)

    def _sync_node_rules(self, sg_id, service, svc_conf, nodes):
        node_sgs = set()
        for node in nodes:
            for port in network.get_attached_ports(node):
                node_sgs.update(port.security_group_ids or [])
        node_sgs.discard(sg_id)

        desired = set()
        for node_sg in node_sgs:
            for protocol, node_port in _get_node_ports(service):
                desired.add((node_sg, protocol, node_port))

        current = set()
        for rule in network.list_security_group_rules(remote_group_id=sg_id):
            key = (rule.security_group_id, rule.protocol,
                   rule.port_range_min)
            if key in desired and key not in current:
                current.add(key)
                continue
            network.delete_security_group_rule(rule.id)

        ethertype = k_const.SG_ETHERTYPE_IPV4
        if svc_conf.ip_family == k_const.K8S_IP_FAMILY_IPV6:
            ethertype = k_const.SG_ETHERTYPE_IPV6
        for node_sg, protocol, node_port in sorted(desired - current):
            network.create_security_group_rule(
                security_group_id=node_sg,
                direction=k_const.SG_RULE_DIRECTION_INGRESS,
                ether_type=ethertype,
                protocol=protocol,
                port_range_min=node_port,
                port_range_max=node_port,
                remote_group_id=sg_id)

    def _attach(self, port, sg_id):
        sg_ids = list(port.security_group_ids or [])
        if sg_id not in sg_ids:
            network.update_port_security_groups(port, sg_ids + [sg_id])
        tags = list(port.tags or [])
        if sg_id not in tags:
            network.set_port_tags(port, tags + [sg_id])

    def _detach(self, port, sg_id):
        sg_ids = list(port.security_group_ids or [])
        if sg_id in sg_ids:
            sg_ids.remove(sg_id)
            network.update_port_security_groups(port, sg_ids)
        tags = list(port.tags or [])
        if sg_id in tags:
            tags.remove(sg_id)
            network.set_port_tags(port, tags)
