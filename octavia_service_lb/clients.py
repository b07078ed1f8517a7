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

from keystoneauth1 import session as k_session
from kuryr.lib import utils
from openstack import connection

from octavia_service_lb import config

_AUTH_GROUP = 'neutron'
_POOL_MAXSIZE = 1000
_CONNECTION = 'openstacksdk'

_clients = {}


def _get_connection():
    try:
        return _clients[_CONNECTION]
    except KeyError:
        raise RuntimeError('OpenStack clients are not set up yet, '
                           'setup_clients() must be called first')


def get_network_client():
    return _get_connection().network


def get_loadbalancer_client():
    return _get_connection().load_balancer


def get_compute_client():
    return _get_connection().compute


def _get_session(auth_group):
    auth_plugin = utils.get_auth_plugin(auth_group)
    session = utils.get_keystone_session(auth_group, auth_plugin)

    # Concurrent reconciliation passes share the pool of the session.
    adapter = k_session.TCPKeepAliveAdapter(pool_maxsize=_POOL_MAXSIZE)
    for scheme in list(session.session.adapters):
        session.session.mount(scheme, adapter)
    return session


def setup_clients(auth_group=_AUTH_GROUP):
    """Builds the openstacksdk connection every accessor goes through

    Credentials and the region are read from the [neutron] section
    registered by kuryr-lib, or from auth_group when given.
    """
    session = _get_session(auth_group)
    _clients[_CONNECTION] = connection.Connection(
        session=session,
        region_name=getattr(config.CONF[auth_group], 'region_name', None))
