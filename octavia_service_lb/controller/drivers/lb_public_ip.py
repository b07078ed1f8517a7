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

from octavia_service_lb import constants as k_const
from octavia_service_lb.controller.drivers import base
from octavia_service_lb.controller.drivers import public_ip
from octavia_service_lb import exceptions as k_exc
from octavia_service_lb import utils

LOG = logging.getLogger(__name__)


class FloatingIpServicePubIPDriver(base.ServicePubIpDriver):
    """Manages floating ips of Service load balancers.

    The address a Service is reachable on is, first match wins:
    1. The floating IP already bound to the load balancer VIP port.
    2. The floating IP given in service.spec.loadBalancerIP, bound to the VIP
       port when it is free.
    3. A new floating IP from the floating network, on the floating subnet
       or on the first subnet selected by the floating subnet matchers that
       has a free address.
    4. The VIP address, when no floating network is known.
    """

    def __init__(self):
        super(FloatingIpServicePubIPDriver, self).__init__()
        self._drv_pub_ip = public_ip.FipPubIpDriver()

    def acquire_service_pub_ip_info(self, cluster_name, service, svc_conf,
                                    loadbalancer):
        if svc_conf.internal:
            return loadbalancer.vip_address

        port_id = loadbalancer.vip_port_id
        fip = self._drv_pub_ip.get_ip_by_port(port_id)
        if fip:
            return fip.floating_ip_address

        spec_lb_ip = service['spec'].get('loadBalancerIP')
        if spec_lb_ip:
            fip = self._drv_pub_ip.find_ip(spec_lb_ip)
            if fip:
                if fip.port_id and fip.port_id != port_id:
                    raise k_exc.FloatingIPNotAvailable(spec_lb_ip,
                                                       fip.port_id)
                LOG.info('Attaching floating IP %(ip)s to load balancer '
                         'port %(port)s', {'ip': spec_lb_ip, 'port': port_id})
                self._drv_pub_ip.associate(fip.id, port_id)
                return fip.floating_ip_address

        public_network_id = svc_conf.floating_network_id
        if not public_network_id:
            LOG.warning('Floating network configuration not provided for '
                        'Service %s, forcing to ensure an internal load '
                        'balancer service', utils.get_res_unique_name(service))
            return loadbalancer.vip_address

        description = k_const.FIP_DESCRIPTION % {
            'service': utils.get_res_unique_name(service),
            'cluster': cluster_name}
        subnet_spec = svc_conf.floating_subnet
        if (not spec_lb_ip and subnet_spec is not None and
                subnet_spec.is_matcher_configured()):
            fip = self._allocate_on_matching_subnet(public_network_id,
                                                    subnet_spec, port_id,
                                                    description)
        else:
            public_subnet_id = None
            if subnet_spec is not None:
                public_subnet_id = subnet_spec.subnet_id
            fip = self._drv_pub_ip.allocate_ip(public_network_id, port_id,
                                               description,
                                               pub_subnet_id=public_subnet_id,
                                               ip_addr=spec_lb_ip)
        return fip.floating_ip_address

    def _allocate_on_matching_subnet(self, public_network_id, subnet_spec,
                                     port_id, description):
        subnets = public_ip.list_floating_subnets(public_network_id,
                                                  subnet_spec)
        if not subnets:
            raise k_exc.SubnetNotFound(
                'No subnet matching %s found for network %s' %
                (subnet_spec, public_network_id))

        LOG.debug('Found %(count)d subnets matching %(spec)s for network '
                  '%(net)s', {'count': len(subnets), 'spec': subnet_spec,
                              'net': public_network_id})
        last_error = None
        for subnet in subnets:
            try:
                return self._drv_pub_ip.allocate_ip(
                    public_network_id, port_id, description,
                    pub_subnet_id=subnet.id)
            except os_exc.SDKException as ex:
                LOG.info('Cannot use subnet %(name)s: %(err)s',
                         {'name': subnet.name, 'err': ex})
                last_error = ex
        raise k_exc.SubnetNotFound(
            'No free subnet matching %s found for network %s (last error %s)'
            % (subnet_spec, public_network_id, last_error))

    def get_pub_ip(self, loadbalancer):
        fip = self._drv_pub_ip.get_ip_by_port(loadbalancer.vip_port_id)
        if fip:
            return fip.floating_ip_address
        return None

    def release_pub_ip(self, service, loadbalancer):
        if utils.get_annotation_bool(
                service, k_const.K8S_ANNOTATION_KEEP_FLOATING_IP, False):
            LOG.debug('Keeping floating IP of Service %s as requested',
                      utils.get_res_unique_name(service))
            return

        fip = self._drv_pub_ip.get_ip_by_port(loadbalancer.vip_port_id)
        if fip is None:
            return
        # Only addresses allocated for a Service are released, the ones
        # given in loadBalancerIP belong to the user.
        if k_const.FIP_DESCRIPTION_PREFIX not in (fip.description or ''):
            LOG.debug('Keeping floating IP %s not allocated for a Service',
                      fip.floating_ip_address)
            return
        LOG.info('Deleting floating IP %(ip)s of Service %(svc)s',
                 {'ip': fip.floating_ip_address,
                  'svc': utils.get_res_unique_name(service)})
        self._drv_pub_ip.free_ip(fip.id)
