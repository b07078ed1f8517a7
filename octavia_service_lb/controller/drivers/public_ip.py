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

import fnmatch
import re

from openstack import exceptions as os_exc
from oslo_log import log as logging

from octavia_service_lb import clients
from octavia_service_lb.controller.drivers import network
from octavia_service_lb import exceptions as k_exc

LOG = logging.getLogger(__name__)


def _tag_list(subnet_tags):
    negate = subnet_tags.startswith('!')
    if negate:
        subnet_tags = subnet_tags[1:]
    match_all = subnet_tags.startswith('&')
    if match_all:
        subnet_tags = subnet_tags[1:]
    tags = [tag.strip() for tag in subnet_tags.split(',')]
    return tags, negate, match_all


def get_tag_filters(subnet_tags):
    """Translates a floating subnet tag spec into Neutron list filters

    "a,b" selects subnets with any of the tags, "&a,b" subnets with all of
    them. A leading "!" negates the selection.
    """
    if not subnet_tags:
        return {}
    tags, negate, match_all = _tag_list(subnet_tags)
    if match_all:
        key = 'not_any_tags' if negate else 'tags'
    else:
        key = 'not_tags' if negate else 'any_tags'
    return {key: ','.join(tags)}


def subnet_name_matcher(pattern):
    """Returns a predicate matching subnets by name

    :param pattern: glob, or regular expression when prefixed with "~";
                    a leading "!" negates the match
    :raises InvalidServiceConfiguration: if the regular expression is invalid
    """
    negate = pattern.startswith('!')
    if negate:
        pattern = pattern[1:]
    if pattern.startswith('~'):
        try:
            regex = re.compile(pattern[1:])
        except re.error as ex:
            raise k_exc.InvalidServiceConfiguration(
                'Invalid subnet regexp pattern %r: %s' % (pattern[1:], ex))
    else:
        regex = re.compile(fnmatch.translate(pattern))

    def match(subnet):
        return bool(regex.fullmatch(subnet.name or '')) != negate

    return match


def list_floating_subnets(network_id, subnet_spec):
    """Lists the subnets of the network selected by a `FloatingSubnetSpec`"""
    filters = get_tag_filters(subnet_spec.subnet_tags)
    subnets = network.list_subnets(network_id=network_id, **filters)
    if subnet_spec.subnet:
        match = subnet_name_matcher(subnet_spec.subnet)
        subnets = [subnet for subnet in subnets if match(subnet)]
    return subnets


class FipPubIpDriver(object):
    """Floating IP implementation for public IP capability."""

    def get_ip_by_port(self, port_id):
        """Returns the floating IP bound to the port or None"""
        if not port_id:
            return None
        os_net = clients.get_network_client()
        for entry in os_net.ips(port_id=port_id):
            if entry and entry.floating_ip_address:
                LOG.debug('FIP %s already allocated to port %s',
                          entry.floating_ip_address, port_id)
                return entry
        return None

    def find_ip(self, ip_addr):
        """Returns the floating IP with the given address or None"""
        os_net = clients.get_network_client()
        for entry in os_net.ips(floating_ip_address=ip_addr):
            if entry and entry.floating_ip_address == ip_addr:
                return entry
        return None

    def allocate_ip(self, pub_net_id, port_id, description,
                    pub_subnet_id=None, ip_addr=None):
        """Allocates a floating IP bound to the port

        :returns: openstacksdk FloatingIP
        """
        os_net = clients.get_network_client()
        request = {
            'floating_network_id': pub_net_id,
            'port_id': port_id,
            'description': description,
        }
        if pub_subnet_id:
            request['subnet_id'] = pub_subnet_id
        if ip_addr:
            request['floating_ip_address'] = ip_addr

        try:
            fip = os_net.create_ip(**request)
        except os_exc.SDKException:
            LOG.error("Failed to create floating IP - netid=%s subnetid=%s",
                      pub_net_id, pub_subnet_id)
            raise
        LOG.info('Allocated floating IP %(ip)s for port %(port)s',
                 {'ip': fip.floating_ip_address, 'port': port_id})
        return fip

    def free_ip(self, res_id):
        os_net = clients.get_network_client()
        try:
            os_net.delete_ip(res_id, ignore_missing=True)
        except os_exc.SDKException:
            LOG.error("Failed to delete floating_ip_id =%s !", res_id)
            raise
        LOG.info('Deleted floating IP %s', res_id)

    def associate(self, res_id, vip_port_id):
        os_net = clients.get_network_client()
        try:
            return os_net.update_ip(res_id, port_id=vip_port_id)
        except os_exc.ConflictException:
            LOG.warning("Conflict when assigning floating IP with id %s. "
                        "Checking if it's already assigned correctly.", res_id)
            try:
                fip = os_net.get_ip(res_id)
            except os_exc.NotFoundException:
                LOG.exception("Failed to get FIP %s - it doesn't exist.",
                              res_id)
                raise

            if fip.port_id == vip_port_id:
                LOG.debug('FIP %s already assigned to %s', res_id,
                          vip_port_id)
                return fip
            LOG.exception('Failed to assign FIP %s to VIP port %s. It is '
                          'probably already bound', res_id, vip_port_id)
            raise
