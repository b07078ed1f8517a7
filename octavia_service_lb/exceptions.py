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


def _service_name(service):
    return "%(namespace)s/%(name)s" % service['metadata']


class InvalidServiceConfiguration(Exception):
    """Service cannot be realized with its current annotations or config

    Raised before any mutating call is made. It is never retried by the
    engine, the caller is expected to try again once the Service or the
    configuration is fixed.
    """


class NoPortsError(InvalidServiceConfiguration):
    def __init__(self, service):
        super().__init__('No ports provided for LoadBalancer Service %s' %
                         _service_name(service))


class NoBackendsError(InvalidServiceConfiguration):
    def __init__(self, service):
        super().__init__('There are no available nodes for LoadBalancer '
                         'Service %s' % _service_name(service))


class ConflictingModeError(InvalidServiceConfiguration):
    def __init__(self, first, second):
        super().__init__('Annotations %s and %s cannot be used together' %
                         (first, second))


class InvalidLoadBalancerClass(InvalidServiceConfiguration):
    def __init__(self, class_name):
        super().__init__('Invalid load balancer class %r' % class_name)


class InvalidSourceRange(InvalidServiceConfiguration):
    def __init__(self, source_range):
        super().__init__('Invalid load balancer source range %r' %
                         source_range)


class ListenerPortConflict(InvalidServiceConfiguration):
    def __init__(self, loadbalancer_id, port):
        super().__init__('Listener port %s already exists on load balancer '
                         '%s and is used by another Service' %
                         (port, loadbalancer_id))


class SharedLoadBalancerError(InvalidServiceConfiguration):
    pass


class MultipleResults(InvalidServiceConfiguration):
    def __init__(self, kind, name, ids):
        super().__init__('More than one live %s matches %s: %s' %
                         (kind, name, ', '.join(ids)))


class ResourceNotFound(Exception):
    def __init__(self, kind, resource_id):
        super().__init__('%s %s not found' % (kind, resource_id))


class ResourceNotReady(Exception):
    def __init__(self, resource):
        self.message = "Resource not ready: %r" % resource
        super(ResourceNotReady, self).__init__(self.message)


class LoadBalancerNotReady(ResourceNotReady):
    def __init__(self, loadbalancer_id, status):
        super().__init__(
            'Loadbalancer %s is stuck in %s status for several minutes. This '
            'is unexpected and indicates problem with OpenStack Octavia. '
            'Please contact your OpenStack administrator.' % (
                loadbalancer_id, status))


class LoadBalancerNotActive(ResourceNotReady):
    def __init__(self, loadbalancer_id, status):
        super().__init__(
            'Loadbalancer %s is not ACTIVE, current provisioning status: %s'
            % (loadbalancer_id, status))


class LoadBalancerInErrorState(Exception):
    """Load balancer went into the ERROR provisioning status

    Terminal, it is not retried. The caller decides whether to delete and
    recreate the load balancer.
    """
    def __init__(self, loadbalancer_id):
        super().__init__('Loadbalancer %s has gone into ERROR state' %
                         loadbalancer_id)


class FloatingIPNotAvailable(Exception):
    def __init__(self, address, port_id=None):
        msg = 'Floating IP %s is not available' % address
        if port_id:
            msg += ', it is bound to port %s' % port_id
        super().__init__(msg)


class NodeAddressNotFound(Exception):
    def __init__(self, node_name):
        super().__init__('No usable address found for node %s' % node_name)


class SubnetNotFound(Exception):
    pass


class ImplementedElsewhere(Exception):
    def __init__(self):
        super().__init__('LoadBalancer Services are handled elsewhere, '
                         '[loadbalancer]enabled is False')


class ReconcileCancelled(Exception):
    """Reconciliation pass was cancelled while waiting on the backend"""


class UnreachableOctavia(Exception):
    """Exception indicates Octavia API failure and can not be reached

    This exception is raised when the Octavia API call returns 'None' on the
    version field and we need to properly log a message informing the user.
    """
    def __init__(self, message):
        super(UnreachableOctavia, self).__init__(message)