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

import copy

from kuryr.lib import opts as lib_opts
from oslo_log import _options

from octavia_service_lb import config

_octavia_service_lb_opts = [
    ('loadbalancer', config.loadbalancer_opts),
    (config.LB_CLASS_GROUP_PREFIX + '<name>', config.lb_class_opts),
]


def list_octavia_service_lb_opts():
    """Return a list of oslo_config options available in the service.

    Each element of the list is a tuple. The first element is the name of the
    group under which the list of elements in the second element will be
    registered. The lb_class group stands for every [lb_class:<name>] section
    whose name is listed in the lb_classes option.

    This function is also discoverable via the 'octavia_service_lb' entry
    point under the 'oslo.config.opts' namespace, so the sample config file
    generator finds the options exposed to users.

    :returns: a list of (group_name, opts) tuples
    """

    return ([(k, copy.deepcopy(o)) for k, o in _octavia_service_lb_opts] +
            lib_opts.list_neutron_opts() + _options.list_opts())
