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

import netaddr
from oslo_log import log

from octavia_service_lb import constants as const
from octavia_service_lb import exceptions

LOG = log.getLogger(__name__)

_ADDRESS_TYPES = (const.K8S_NODE_ADDRESS_INTERNAL,
                  const.K8S_NODE_ADDRESS_EXTERNAL)


def get_res_unique_name(resource):
    """Returns a unique name for the resource like Service or Node.

    It returns a unique name for the resource composed of its name and the
    namespace it is created in or just name for cluster-scoped resources.

    :returns: String with <namespace/>name of the resource
    """
    try:
        return "%(namespace)s/%(name)s" % resource['metadata']
    except KeyError:
        return "%(name)s" % resource['metadata']


def cut_string(value, length=const.OPENSTACK_NAME_MAX_LENGTH):
    return value[:length]


def get_lb_name(cluster_name, service):
    metadata = service['metadata']
    return cut_string('%s%s_%s_%s' % (const.LB_NAME_PREFIX, cluster_name,
                                      metadata['namespace'],
                                      metadata['name']))


def get_lb_legacy_name(service):
    uid = service['metadata'].get('uid', '').replace('-', '')
    return ('a' + uid)[:const.LB_LEGACY_NAME_LENGTH]


def get_listener_name(index, lb_name):
    return cut_string('listener_%d_%s' % (index, lb_name))


def get_pool_name(index, lb_name):
    return cut_string('pool_%d_%s' % (index, lb_name))


def get_monitor_name(index, lb_name):
    return cut_string('monitor_%d_%s' % (index, lb_name))


def get_sg_name(service):
    metadata = service['metadata']
    return cut_string(const.SG_NAME_FORMAT % {
        'uid': metadata.get('uid', ''),
        'namespace': metadata['namespace'],
        'name': metadata['name']})


def get_annotation_string(service, key, default=None):
    # An annotation set to an empty string is returned as is.
    annotations = service['metadata'].get('annotations') or {}
    return annotations.get(key, default)


def get_annotation_int(service, key, default):
    value = get_annotation_string(service, key)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        LOG.warning('Could not parse int value from %(value)r, falling back '
                    'to default %(key)s = %(default)s',
                    {'value': value, 'key': key, 'default': default})
        return default


def get_annotation_bool(service, key, default):
    value = get_annotation_string(service, key)
    if value == 'true':
        return True
    if value == 'false':
        return False
    return default


def set_annotation(service, key, value):
    metadata = service['metadata']
    if metadata.get('annotations') is None:
        metadata['annotations'] = {}
    metadata['annotations'][key] = value


def get_service_ports(service):
    return service['spec'].get('ports') or []


def get_preferred_ip_family(service):
    """Returns the first IP family of the Service, or None if unset"""
    families = service['spec'].get('ipFamilies')
    if families:
        return families[0]
    return None


def _matches_family(address, ip_family):
    if ip_family == const.K8S_IP_FAMILY_IPV4:
        return netaddr.valid_ipv4(address)
    if ip_family == const.K8S_IP_FAMILY_IPV6:
        return netaddr.valid_ipv6(address)
    return True


def get_node_address(node, ip_family=None):
    """Returns the address a load balancer reaches the node on.

    InternalIP addresses are preferred over ExternalIP ones. Only addresses
    of ip_family are considered when it is set.

    :raises NodeAddressNotFound: if the node has no usable address
    """
    addresses = node.get('status', {}).get('addresses') or []
    for address_type in _ADDRESS_TYPES:
        for address in addresses:
            if (address.get('type') == address_type and
                    _matches_family(address.get('address', ''), ip_family)):
                return address['address']
    raise exceptions.NodeAddressNotFound(node['metadata']['name'])


def get_instance_id(node):
    provider_id = node.get('spec', {}).get('providerID') or ''
    return provider_id.rsplit('/', 1)[-1]


def get_ip_version(address):
    return netaddr.IPNetwork(address).version


def get_source_ranges(service, ip_family=None):
    """Returns the CIDRs allowed to reach the Service

    spec.loadBalancerSourceRanges wins over the source ranges annotation.
    Without any of them the whole address space of ip_family is allowed.

    :raises InvalidSourceRange: if any of the ranges is not a valid CIDR
    """
    ranges = service['spec'].get('loadBalancerSourceRanges') or []
    if not ranges:
        value = get_annotation_string(service,
                                      const.K8S_ANNOTATION_SOURCE_RANGES, '')
        ranges = [r.strip() for r in value.split(',') if r.strip()]
    if not ranges:
        if ip_family == const.K8S_IP_FAMILY_IPV6:
            return [const.ANY_IPV6_CIDR]
        return [const.ANY_IPV4_CIDR]

    cidrs = []
    for source_range in ranges:
        if '/' not in source_range:
            raise exceptions.InvalidSourceRange(source_range)
        try:
            cidr = str(netaddr.IPNetwork(source_range).cidr)
        except (netaddr.AddrFormatError, ValueError):
            raise exceptions.InvalidSourceRange(source_range)
        if cidr not in cidrs:
            cidrs.append(cidr)
    return cidrs


def is_allow_all(cidrs):
    return any(cidr in (const.ANY_IPV4_CIDR, const.ANY_IPV6_CIDR)
               for cidr in cidrs)


def get_env_int(name, default):
    value = os.environ.get(name)
    if not value:
        return default
    try:
        steps = int(value)
    except ValueError:
        LOG.warning('Ignoring %(name)s=%(value)r, it is not an integer',
                    {'name': name, 'value': value})
        return default
    if steps < 0:
        LOG.warning('Ignoring %(name)s=%(value)r, it is negative',
                    {'name': name, 'value': value})
        return default
    return steps
