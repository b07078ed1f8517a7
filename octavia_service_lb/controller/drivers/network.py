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
from oslo_log import log as logging

from octavia_service_lb import clients
from octavia_service_lb import constants as k_const
from octavia_service_lb import exceptions as k_exc
from octavia_service_lb import utils

LOG = logging.getLogger(__name__)


def get_subnet(subnet_id):
    os_net = clients.get_network_client()
    try:
        return os_net.get_subnet(subnet_id)
    except os_exc.ResourceNotFound:
        LOG.error("Subnet %s not found!", subnet_id)
        raise k_exc.SubnetNotFound('Subnet %s not found' % subnet_id)


def get_subnet_cidr(subnet_id):
    return get_subnet(subnet_id).cidr


def list_subnets(**filters):
    os_net = clients.get_network_client()
    return list(os_net.subnets(**filters))


def get_external_network_id():
    """Returns the first external network having an IPv4 subnet, or None"""
    os_net = clients.get_network_client()
    for network in os_net.networks(is_router_external=True):
        if list_subnets(network_id=network.id,
                        ip_version=k_const.IP_VERSION_4):
            LOG.debug('Using external network %s for floating IPs',
                      network.id)
            return network.id
    return None


def get_instance_id(node):
    """Returns the ID of the server backing the Kubernetes node or None

    The ID is taken from spec.providerID, servers of nodes that have none are
    looked up by the node name.
    """
    instance_id = utils.get_instance_id(node)
    if instance_id:
        return instance_id

    os_compute = clients.get_compute_client()
    server = os_compute.find_server(node['metadata']['name'],
                                    ignore_missing=True)
    if server is None:
        LOG.warning('No server found for node %s',
                    node['metadata']['name'])
        return None
    return server.id


def get_node_addresses(node):
    """Returns the addresses of the node, InternalIP ones first"""
    addresses = node.get('status', {}).get('addresses') or []
    result = []
    for address_type in (k_const.K8S_NODE_ADDRESS_INTERNAL,
                         k_const.K8S_NODE_ADDRESS_EXTERNAL):
        result.extend(a['address'] for a in addresses
                      if a.get('type') == address_type and
                      a['address'] not in result)
    return result


def get_attached_ports(node):
    """Returns the Neutron ports of the server backing the node"""
    instance_id = get_instance_id(node)
    if not instance_id:
        return []
    os_net = clients.get_network_client()
    return list(os_net.ports(device_id=instance_id))


def get_node_subnet_id(node, ip_family=None):
    """Infers the subnet a load balancer shares with the node

    The node address of the preferred family is matched against the fixed
    IPs of the interfaces attached to the node server, the other node
    addresses of the same family are tried next.

    :raises SubnetNotFound: if no interface carries the node address
    """
    address = utils.get_node_address(node, ip_family)
    version = utils.get_ip_version(address)
    candidates = [address] + [a for a in get_node_addresses(node)
                              if a != address and
                              utils.get_ip_version(a) == version]

    instance_id = get_instance_id(node)
    if instance_id:
        subnets = {}
        os_compute = clients.get_compute_client()
        for interface in os_compute.server_interfaces(instance_id):
            for fixed_ip in interface.fixed_ips or []:
                subnets.setdefault(fixed_ip.get('ip_address'),
                                   fixed_ip.get('subnet_id'))
        for candidate in candidates:
            if subnets.get(candidate):
                return subnets[candidate]

    raise k_exc.SubnetNotFound('No subnet found for address %s of node %s'
                               % (address, node['metadata']['name']))


def find_security_group(name):
    """Returns the security group named so or None

    :raises MultipleResults: if the name is not unique
    """
    os_net = clients.get_network_client()
    sgs = list(os_net.security_groups(name=name))
    if len(sgs) > 1:
        raise k_exc.MultipleResults('security group', name,
                                    [sg.id for sg in sgs])
    if sgs:
        return sgs[0]
    return None


def create_security_group(name, description):
    os_net = clients.get_network_client()
    sg = os_net.create_security_group(name=name, description=description)
    LOG.info('Created security group %(id)s named %(name)s',
             {'id': sg.id, 'name': name})
    return sg


def delete_security_group(sg_id):
    os_net = clients.get_network_client()
    LOG.info('Deleting security group %s', sg_id)
    os_net.delete_security_group(sg_id, ignore_missing=True)


def list_security_group_rules(**filters):
    os_net = clients.get_network_client()
    return list(os_net.security_group_rules(**filters))


def create_security_group_rule(**rule):
    os_net = clients.get_network_client()
    try:
        created = os_net.create_security_group_rule(**rule)
    except os_exc.ConflictException:
        LOG.debug('Security group rule %s already exists', rule)
        return None
    LOG.info('Created security group rule %(id)s in %(sg)s',
             {'id': created.id, 'sg': rule.get('security_group_id')})
    return created


def delete_security_group_rule(rule_id):
    os_net = clients.get_network_client()
    LOG.info('Deleting security group rule %s', rule_id)
    os_net.delete_security_group_rule(rule_id, ignore_missing=True)


def get_port(port_id):
    os_net = clients.get_network_client()
    return os_net.get_port(port_id)


def list_ports(**filters):
    os_net = clients.get_network_client()
    return list(os_net.ports(**filters))


def update_port_security_groups(port, sg_ids):
    os_net = clients.get_network_client()
    LOG.info('Setting security groups of port %(port)s to %(sgs)s',
             {'port': port.id, 'sgs': sg_ids})
    return os_net.update_port(port.id, security_groups=sg_ids)


def set_port_tags(port, tags):
    os_net = clients.get_network_client()
    os_net.set_tags(port, tags=tags)
