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

from oslo_versionedobjects import base as obj_base
from oslo_versionedobjects import fields as obj_fields

from octavia_service_lb.objects import base as k_obj


@obj_base.VersionedObjectRegistry.register
class OctaviaCapabilities(k_obj.ServiceLBObjectBase):
    """Features the Octavia API offers to a given provider

    Resolved once, when the reconciler is built, from the maximum API version
    Octavia advertises.
    """
    VERSION = '1.0'

    fields = {
        'provider': obj_fields.StringField(nullable=True, default=None),
        'tags': obj_fields.BooleanField(default=False),
        'vip_acl': obj_fields.BooleanField(default=False),
        'flavors': obj_fields.BooleanField(default=False),
        'timeouts': obj_fields.BooleanField(default=False),
        'availability_zones': obj_fields.BooleanField(default=False),
        'http_monitors_on_udp': obj_fields.BooleanField(default=False),
    }


@obj_base.VersionedObjectRegistry.register
class FloatingSubnetSpec(k_obj.ServiceLBObjectBase):
    VERSION = '1.0'

    fields = {
        'subnet_id': obj_fields.StringField(nullable=True, default=None),
        'subnet': obj_fields.StringField(nullable=True, default=None),
        'subnet_tags': obj_fields.StringField(nullable=True, default=None),
    }

    def is_configured(self):
        return bool(self.subnet_id) or self.is_matcher_configured()

    def is_matcher_configured(self):
        return not self.subnet_id and bool(self.subnet or self.subnet_tags)

    def __str__(self):
        fields = [(k, getattr(self, k)) for k in ('subnet_id', 'subnet',
                                                  'subnet_tags')]
        fields = ['%s: %r' % (k, v) for k, v in fields if v]
        return ', '.join(fields) or '<none>'


@obj_base.VersionedObjectRegistry.register
class ServiceConfig(k_obj.ServiceLBObjectBase):
    """Normalized configuration of one reconciliation pass of a Service"""
    VERSION = '1.0'

    fields = {
        'lb_name': obj_fields.StringField(default=''),
        'lb_legacy_name': obj_fields.StringField(default=''),
        'lb_id': obj_fields.StringField(nullable=True, default=None),
        'class_name': obj_fields.StringField(nullable=True, default=None),
        'internal': obj_fields.BooleanField(default=False),
        'ip_family': obj_fields.StringField(nullable=True, default=None),
        'connection_limit': obj_fields.IntegerField(default=-1),
        'network_id': obj_fields.StringField(nullable=True, default=None),
        'subnet_id': obj_fields.StringField(nullable=True, default=None),
        'member_subnet_id': obj_fields.StringField(nullable=True,
                                                   default=None),
        'vip_port_id': obj_fields.StringField(nullable=True, default=None),
        'floating_network_id': obj_fields.StringField(nullable=True,
                                                      default=None),
        'floating_subnet': obj_fields.ObjectField('FloatingSubnetSpec',
                                                  nullable=True,
                                                  default=None),
        'keep_client_ip': obj_fields.BooleanField(default=False),
        'proxy_protocol': obj_fields.BooleanField(default=False),
        'timeout_client_data': obj_fields.IntegerField(nullable=True,
                                                       default=None),
        'timeout_member_connect': obj_fields.IntegerField(nullable=True,
                                                          default=None),
        'timeout_member_data': obj_fields.IntegerField(nullable=True,
                                                       default=None),
        'timeout_tcp_inspect': obj_fields.IntegerField(nullable=True,
                                                       default=None),
        'source_ranges': obj_fields.ListOfStringsField(default=[]),
        'allowed_cidrs': obj_fields.ListOfStringsField(default=[]),
        'flavor_id': obj_fields.StringField(nullable=True, default=None),
        'availability_zone': obj_fields.StringField(nullable=True,
                                                    default=None),
        'tls_container_ref': obj_fields.StringField(nullable=True,
                                                    default=None),
        'enable_monitor': obj_fields.BooleanField(default=False),
        'health_check_node_port': obj_fields.IntegerField(default=0),
        'monitor_delay': obj_fields.IntegerField(default=5),
        'monitor_timeout': obj_fields.IntegerField(default=3),
        'monitor_max_retries': obj_fields.IntegerField(default=1),
        'supports_tags': obj_fields.BooleanField(default=False),
    }
