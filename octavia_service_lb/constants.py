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

K8S_OBJ_SERVICE = 'Service'
K8S_OBJ_NODE = 'Node'

K8S_SERVICE_AFFINITY_CLIENT_IP = 'ClientIP'
K8S_SERVICE_TRAFFIC_POLICY_LOCAL = 'Local'
K8S_NODE_ADDRESS_INTERNAL = 'InternalIP'
K8S_NODE_ADDRESS_EXTERNAL = 'ExternalIP'
K8S_IP_FAMILY_IPV4 = 'IPv4'
K8S_IP_FAMILY_IPV6 = 'IPv6'
IP_VERSION_4 = 4
IP_VERSION_6 = 6

K8S_ANNOTATION_PREFIX = 'loadbalancer.openstack.org/'
K8S_ANNOTATION_CONNECTION_LIMIT = K8S_ANNOTATION_PREFIX + 'connection-limit'
K8S_ANNOTATION_FLOATING_NETWORK_ID = (K8S_ANNOTATION_PREFIX +
                                      'floating-network-id')
K8S_ANNOTATION_FLOATING_SUBNET = K8S_ANNOTATION_PREFIX + 'floating-subnet'
K8S_ANNOTATION_FLOATING_SUBNET_ID = (K8S_ANNOTATION_PREFIX +
                                     'floating-subnet-id')
K8S_ANNOTATION_FLOATING_SUBNET_TAGS = (K8S_ANNOTATION_PREFIX +
                                       'floating-subnet-tags')
K8S_ANNOTATION_CLASS = K8S_ANNOTATION_PREFIX + 'class'
K8S_ANNOTATION_KEEP_FLOATING_IP = K8S_ANNOTATION_PREFIX + 'keep-floatingip'
K8S_ANNOTATION_PORT_ID = K8S_ANNOTATION_PREFIX + 'port-id'
K8S_ANNOTATION_PROXY_PROTOCOL = K8S_ANNOTATION_PREFIX + 'proxy-protocol'
K8S_ANNOTATION_SUBNET_ID = K8S_ANNOTATION_PREFIX + 'subnet-id'
K8S_ANNOTATION_NETWORK_ID = K8S_ANNOTATION_PREFIX + 'network-id'
K8S_ANNOTATION_MEMBER_SUBNET_ID = K8S_ANNOTATION_PREFIX + 'member-subnet-id'
K8S_ANNOTATION_TIMEOUT_CLIENT_DATA = (K8S_ANNOTATION_PREFIX +
                                      'timeout-client-data')
K8S_ANNOTATION_TIMEOUT_MEMBER_CONNECT = (K8S_ANNOTATION_PREFIX +
                                         'timeout-member-connect')
K8S_ANNOTATION_TIMEOUT_MEMBER_DATA = (K8S_ANNOTATION_PREFIX +
                                      'timeout-member-data')
K8S_ANNOTATION_TIMEOUT_TCP_INSPECT = (K8S_ANNOTATION_PREFIX +
                                      'timeout-tcp-inspect')
K8S_ANNOTATION_X_FORWARDED_FOR = K8S_ANNOTATION_PREFIX + 'x-forwarded-for'
K8S_ANNOTATION_FLAVOR_ID = K8S_ANNOTATION_PREFIX + 'flavor-id'
K8S_ANNOTATION_AVAILABILITY_ZONE = K8S_ANNOTATION_PREFIX + 'availability-zone'
K8S_ANNOTATION_ENABLE_HEALTH_MONITOR = (K8S_ANNOTATION_PREFIX +
                                        'enable-health-monitor')
K8S_ANNOTATION_HEALTH_MONITOR_DELAY = (K8S_ANNOTATION_PREFIX +
                                       'health-monitor-delay')
K8S_ANNOTATION_HEALTH_MONITOR_TIMEOUT = (K8S_ANNOTATION_PREFIX +
                                         'health-monitor-timeout')
K8S_ANNOTATION_HEALTH_MONITOR_MAX_RETRIES = (K8S_ANNOTATION_PREFIX +
                                             'health-monitor-max-retries')
K8S_ANNOTATION_HOSTNAME = K8S_ANNOTATION_PREFIX + 'hostname'
K8S_ANNOTATION_TLS_CONTAINER_REF = (K8S_ANNOTATION_PREFIX +
                                    'default-tls-container-ref')
K8S_ANNOTATION_LOAD_BALANCER_ID = K8S_ANNOTATION_PREFIX + 'load-balancer-id'
K8S_ANNOTATION_INTERNAL_LB = ('service.beta.kubernetes.io/'
                              'openstack-internal-load-balancer')
K8S_ANNOTATION_SOURCE_RANGES = ('service.beta.kubernetes.io/'
                                'load-balancer-source-ranges')

LB_NAME_PREFIX = 'kube_service_'
LB_LEGACY_NAME_LENGTH = 32
OPENSTACK_NAME_MAX_LENGTH = 255
LB_DESCRIPTION = ('Kubernetes external service %(service)s from cluster '
                  '%(cluster)s')
SG_NAME_FORMAT = 'lb-sg-%(uid)s-%(namespace)s-%(name)s'
SG_DESCRIPTION = ('Security Group for %(service)s Service LoadBalancer in '
                  'cluster %(cluster)s')
FIP_DESCRIPTION_PREFIX = 'Floating IP for Kubernetes external service'
FIP_DESCRIPTION = (FIP_DESCRIPTION_PREFIX +
                   ' %(service)s from cluster %(cluster)s')

LB_STATUS_ACTIVE = 'ACTIVE'
LB_STATUS_ERROR = 'ERROR'
LB_STATUS_DELETED = 'DELETED'
LB_STATUS_PENDING_DELETE = 'PENDING_DELETE'

LB_PROTOCOL_TCP = 'TCP'
LB_PROTOCOL_UDP = 'UDP'
LB_PROTOCOL_SCTP = 'SCTP'
LB_PROTOCOL_HTTP = 'HTTP'
LB_PROTOCOL_PROXY = 'PROXY'
LB_PROTOCOL_TERMINATED_HTTPS = 'TERMINATED_HTTPS'

LB_SESSION_PERSISTENCE_SOURCE_IP = 'SOURCE_IP'
LB_HEADER_X_FORWARDED_FOR = 'X-Forwarded-For'

HM_TYPE_HTTP = 'HTTP'
HM_TYPE_UDP_CONNECT = 'UDP-CONNECT'
HM_HTTP_URL_PATH = '/healthz'
HM_HTTP_METHOD = 'GET'
HM_HTTP_EXPECTED_CODES = '200'

OCTAVIA_PROVIDER_OVN = 'ovn'
OCTAVIA_SERVICE_TYPE = 'load-balancer'

OCTAVIA_TIMEOUT_VERSION = 2, 1
OCTAVIA_TAGGING_VERSION = 2, 5
OCTAVIA_FLAVORS_VERSION = 2, 6
OCTAVIA_ACL_VERSION = 2, 12
OCTAVIA_AZ_VERSION = 2, 14
OCTAVIA_HTTP_MONITORS_ON_UDP_VERSION = 2, 16

SG_RULE_DIRECTION_INGRESS = 'ingress'
SG_ETHERTYPE_IPV4 = 'IPv4'
SG_ETHERTYPE_IPV6 = 'IPv6'
SG_PROTOCOL_ICMP = 'icmp'
SG_PROTOCOL_ICMPV6 = 'ipv6-icmp'
ANY_IPV4_CIDR = '0.0.0.0/0'
ANY_IPV6_CIDR = '::/0'
# (ethertype, protocol, icmp type, icmp code, remote prefix) of the
# fragmentation-needed and packet-too-big rules path MTU discovery needs.
SG_ICMP_PMTU_RULES = (
    (SG_ETHERTYPE_IPV4, SG_PROTOCOL_ICMP, 3, 4, ANY_IPV4_CIDR),
    (SG_ETHERTYPE_IPV6, SG_PROTOCOL_ICMPV6, 2, 0, ANY_IPV6_CIDR),
)

NODE_SG_MODE_SUBNET_CIDR = 'subnet_cidr'
NODE_SG_MODE_REMOTE_GROUP = 'remote_group'

ENV_WAIT_ACTIVE_STEPS = 'OCCM_WAIT_LB_ACTIVE_STEPS'
ENV_WAIT_DELETE_STEPS = 'OCCM_WAIT_LB_DELETE_STEPS'
