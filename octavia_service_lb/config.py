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
import sys

from kuryr.lib._i18n import _
from kuryr.lib import config as lib_config
from oslo_config import cfg
from oslo_log import log as logging

from octavia_service_lb import constants as const
from octavia_service_lb import version

LOG = logging.getLogger(__name__)

LB_CLASS_GROUP_PREFIX = 'lb_class:'

loadbalancer_opts = [
    cfg.BoolOpt('enabled',
                help=_('Whether LoadBalancer Services are reconciled at '
                       'all.'),
                default=True),
    cfg.StrOpt('lbaas_driver',
               help=_('The driver that reconciles load balancers for '
                      'Services.'),
               default='octavia'),
    cfg.StrOpt('service_public_ip_driver',
               help=_('The driver that resolves the externally reachable '
                      'address of a load balancer.'),
               default='neutron_floating_ip'),
    cfg.StrOpt('service_security_groups_driver',
               help=_('The driver that manages security groups of load '
                      'balancers and of their member nodes.'),
               default='default'),
    cfg.StrOpt('subnet_id',
               help=_('Neutron subnet ID the load balancer VIP is allocated '
                      'from. When neither this nor network_id is set, the '
                      'subnet of the first backend node is used.')),
    cfg.StrOpt('network_id',
               help=_('Neutron network ID the load balancer VIP is '
                      'allocated from.')),
    cfg.StrOpt('member_subnet_id',
               help=_('Neutron subnet ID of the pool members. Defaults to '
                      'the VIP subnet.')),
    cfg.StrOpt('floating_network_id',
               help=_('External network used to allocate floating IPs for '
                      'load balancer VIPs. When unset, the first external '
                      'network with an IPv4 subnet is used.')),
    cfg.StrOpt('floating_subnet_id',
               help=_('External subnet used to allocate floating IPs.')),
    cfg.StrOpt('floating_subnet',
               help=_('Name pattern of the external subnets floating IPs '
                      'are allocated from. A glob, or a regular expression '
                      'when prefixed with "~". A leading "!" negates the '
                      'pattern.')),
    cfg.StrOpt('floating_subnet_tags',
               help=_('Comma separated tags an external subnet must carry '
                      'to allocate floating IPs from it. Prefix with "&" to '
                      'require all of the tags and with "!" to negate.')),
    cfg.StrOpt('lb_method',
               help=_("The load-balancer algorithm that distributes traffic "
                      "to the pool members. The options are: ROUND_ROBIN, "
                      "LEAST_CONNECTIONS, SOURCE_IP and SOURCE_IP_PORT."),
               default='ROUND_ROBIN'),
    cfg.StrOpt('lb_provider',
               help=_('Octavia provider driver used for new load '
                      'balancers.'),
               default='amphora'),
    cfg.BoolOpt('create_monitor',
                help=_('Create health monitors for the pools by default.'),
                default=False),
    cfg.IntOpt('monitor_delay',
               help=_('Time (in seconds) between health monitor probes.'),
               default=5),
    cfg.IntOpt('monitor_timeout',
               help=_('Time (in seconds) a health monitor probe waits for '
                      'a reply.'),
               default=3),
    cfg.IntOpt('monitor_max_retries',
               help=_('Number of successful probes before a member is '
                      'considered online.'),
               default=1),
    cfg.BoolOpt('manage_security_groups',
                help=_('Create and manage security groups for load '
                       'balancers and their member nodes.'),
                default=False),
    cfg.StrOpt('node_security_mode',
               help=_('How node ports are opened for load balancer '
                      'traffic. "subnet_cidr" allows the member subnet '
                      'CIDR in the load balancer security group and adds '
                      'that group to the node ports. "remote_group" adds '
                      'rules to the security groups of the node ports '
                      'allowing traffic from the load balancer security '
                      'group.'),
               choices=[const.NODE_SG_MODE_SUBNET_CIDR,
                        const.NODE_SG_MODE_REMOTE_GROUP],
               default=const.NODE_SG_MODE_SUBNET_CIDR),
    cfg.BoolOpt('internal_lb',
                help=_('Only create internal load balancers, floating IPs '
                       'are never attached.'),
                default=False),
    cfg.BoolOpt('cascade_delete',
                help=_('Delete load balancers with a single cascading '
                       'call.'),
                default=True),
    cfg.StrOpt('flavor_id',
               help=_('Octavia flavor used for new load balancers.')),
    cfg.StrOpt('availability_zone',
               help=_('Octavia availability zone used for new load '
                      'balancers.')),
    cfg.StrOpt('default_tls_container_ref',
               help=_('Reference of the TLS container used by '
                      'TERMINATED_HTTPS listeners.')),
    cfg.BoolOpt('enable_ingress_hostname',
                help=_('Report a fake hostname instead of an IP in the '
                       'status of PROXY protocol load balancers, so '
                       'kube-proxy does not bypass them.'),
                default=False),
    cfg.StrOpt('ingress_hostname_suffix',
               help=_('Suffix appended to the address to build the fake '
                      'ingress hostname.'),
               default='nip.io'),
    cfg.IntOpt('max_shared_lb',
               help=_('Maximum number of Services sharing a single load '
                      'balancer.'),
               min=1,
               default=2),
    cfg.ListOpt('lb_classes',
                help=_('Names of the load balancer classes Services may '
                       'select. Each class is configured in its own '
                       '[lb_class:<name>] section.'),
                default=[]),
    cfg.FloatOpt('wait_initial_delay',
                 help=_('Time (in seconds) between the first two polls of '
                        'a load balancer provisioning status.'),
                 min=0,
                 default=1.0),
    cfg.FloatOpt('wait_factor',
                 help=_('Factor the polling interval grows by after each '
                        'poll.'),
                 min=1,
                 default=1.2),
    cfg.IntOpt('wait_active_steps',
               help=_('Number of polls before giving up waiting for a load '
                      'balancer to become ACTIVE. Overridden by the '
                      'OCCM_WAIT_LB_ACTIVE_STEPS environment variable.'),
               min=1,
               default=23),
    cfg.IntOpt('wait_delete_steps',
               help=_('Number of polls before giving up waiting for a load '
                      'balancer to be deleted. Overridden by the '
                      'OCCM_WAIT_LB_DELETE_STEPS environment variable.'),
               min=1,
               default=12),
]

lb_class_opts = [
    cfg.StrOpt('floating_network_id',
               help=_('External network floating IPs of this class are '
                      'allocated from.')),
    cfg.StrOpt('floating_subnet_id',
               help=_('External subnet floating IPs of this class are '
                      'allocated from.')),
    cfg.StrOpt('floating_subnet',
               help=_('Name pattern of the external subnets of this '
                      'class.')),
    cfg.StrOpt('floating_subnet_tags',
               help=_('Tags of the external subnets of this class.')),
    cfg.StrOpt('network_id',
               help=_('Network the VIP of this class is allocated from.')),
    cfg.StrOpt('subnet_id',
               help=_('Subnet the VIP of this class is allocated from.')),
    cfg.StrOpt('member_subnet_id',
               help=_('Subnet of the members of this class.')),
]

CONF = cfg.CONF
CONF.register_opts(loadbalancer_opts, group='loadbalancer')

lib_config.register_neutron_opts(CONF)

logging.register_options(CONF)


def register_lb_class_opts(conf=CONF):
    for name in conf.loadbalancer.lb_classes:
        conf.register_opts(lb_class_opts, group=LB_CLASS_GROUP_PREFIX + name)


def get_lb_class(name):
    """Returns the configuration group of a load balancer class

    :param name: class name as found in the Service annotation
    :returns: oslo.config group or None if the class is not configured
    """
    if name not in CONF.loadbalancer.lb_classes:
        return None
    group = LB_CLASS_GROUP_PREFIX + name
    CONF.register_opts(lb_class_opts, group=group)
    return CONF[group]


def init(args, **kwargs):
    version_lb = version.version_info.version_string()
    CONF(args=args, project='octavia-service-lb', version=version_lb,
         **kwargs)
    register_lb_class_opts()


def setup_logging():

    logging.setup(CONF, 'octavia-service-lb')
    logging.set_defaults(default_log_levels=logging.get_default_log_levels())
    version_lb = version.version_info.version_string()
    LOG.info("Logging enabled!")
    LOG.info("%(prog)s version %(version)s",
             {'prog': sys.argv[0], 'version': version_lb})
