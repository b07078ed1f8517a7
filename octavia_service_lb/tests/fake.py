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

from openstack.load_balancer.v2 import health_monitor as o_hm
from openstack.load_balancer.v2 import listener as o_lis
from openstack.load_balancer.v2 import load_balancer as o_lb
from openstack.load_balancer.v2 import member as o_mem
from openstack.load_balancer.v2 import pool as o_pool
from openstack.network.v2 import floating_ip as os_fip
from openstack.network.v2 import port as os_port
from openstack.network.v2 import security_group_rule as os_sgr
from oslo_utils import uuidutils

from octavia_service_lb import constants


def get_service(name='test', namespace='default', ports=None,
                annotations=None, uid='c8f8c4a2-0a3e-4c0b-9a3e-5a8c1e7b6d2f',
                **spec):
    if ports is None:
        ports = [{'name': 'http', 'protocol': 'TCP', 'port': 80,
                  'nodePort': 30080}]
    service = {
        'metadata': {
            'name': name,
            'namespace': namespace,
            'uid': uid,
            'annotations': dict(annotations or {}),
        },
        'spec': {
            'type': 'LoadBalancer',
            'ports': ports,
        },
    }
    service['spec'].update(spec)
    return service


def get_node(name='node-0', address='10.0.0.5', instance_id=None,
             address_type=constants.K8S_NODE_ADDRESS_INTERNAL):
    node = {
        'metadata': {'name': name},
        'spec': {},
        'status': {'addresses': []},
    }
    if instance_id:
        node['spec']['providerID'] = 'openstack:///%s' % instance_id
    if address:
        node['status']['addresses'].append({'type': address_type,
                                            'address': address})
    return node


def get_loadbalancer(**kwargs):
    attrs = {
        'id': uuidutils.generate_uuid(),
        'name': 'kube_service_kubernetes_default_test',
        'provisioning_status': constants.LB_STATUS_ACTIVE,
        'vip_address': '10.0.0.100',
        'vip_port_id': uuidutils.generate_uuid(),
        'vip_subnet_id': uuidutils.generate_uuid(),
        'tags': [],
    }
    attrs.update(kwargs)
    return o_lb.LoadBalancer(**attrs)


def get_listener(**kwargs):
    attrs = {
        'id': uuidutils.generate_uuid(),
        'protocol': 'TCP',
        'protocol_port': 80,
        'connection_limit': -1,
        'tags': [],
    }
    attrs.update(kwargs)
    return o_lis.Listener(**attrs)


def get_pool(listener_id=None, **kwargs):
    attrs = {
        'id': uuidutils.generate_uuid(),
        'protocol': 'TCP',
        'lb_algorithm': 'ROUND_ROBIN',
    }
    if listener_id:
        attrs['listener_id'] = listener_id
        attrs['listeners'] = [{'id': listener_id}]
    attrs.update(kwargs)
    return o_pool.Pool(**attrs)


def get_member(**kwargs):
    attrs = {
        'id': uuidutils.generate_uuid(),
        'name': 'node-0',
        'address': '10.0.0.5',
        'protocol_port': 30080,
    }
    attrs.update(kwargs)
    return o_mem.Member(**attrs)


def get_health_monitor(**kwargs):
    attrs = {
        'id': uuidutils.generate_uuid(),
        'type': 'TCP',
        'delay': 5,
        'timeout': 3,
        'max_retries': 1,
    }
    attrs.update(kwargs)
    return o_hm.HealthMonitor(**attrs)


def get_port(**kwargs):
    attrs = {
        'id': uuidutils.generate_uuid(),
        'security_group_ids': [],
        'tags': [],
    }
    attrs.update(kwargs)
    return os_port.Port(**attrs)


def get_sg_rule(**kwargs):
    attrs = {
        'id': uuidutils.generate_uuid(),
        'direction': constants.SG_RULE_DIRECTION_INGRESS,
        'ether_type': constants.SG_ETHERTYPE_IPV4,
    }
    attrs.update(kwargs)
    return os_sgr.SecurityGroupRule(**attrs)


def get_floating_ip(**kwargs):
    attrs = {
        'id': uuidutils.generate_uuid(),
        'floating_ip_address': '172.24.4.10',
        'description': '',
    }
    attrs.update(kwargs)
    return os_fip.FloatingIP(**attrs)
