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

import abc

from kuryr.lib._i18n import _
from stevedore import driver as stv_driver

from octavia_service_lb import config

_DRIVER_NAMESPACE_BASE = 'octavia_service_lb.controller.drivers'
_DRIVER_MANAGERS = {}


class DriverBase(object):
    """Base class for controller drivers.

    Subclasses must define an *ALIAS* attribute that is used to find a driver
    implementation by `get_instance` class method which utilises
    `stevedore.driver.DriverManager` with the namespace set to
    'octavia_service_lb.controller.drivers.*ALIAS*' and the name of
    the driver determined from the '[loadbalancer]/*ALIAS*_driver'
    configuration parameter.

    Usage example:

        class SomeDriverInterface(DriverBase, metaclass=abc.ABCMeta):
            ALIAS = 'driver_alias'

            @abc.abstractmethod
            def some_method(self):
                pass

        driver = SomeDriverInterface.get_instance()
        driver.some_method()
    """

    @classmethod
    def get_instance(cls, specific_driver=None, scope='default'):
        """Get an implementing driver instance.

        :param specific_driver: Loads a specific driver instead of using conf.
                                Uses separate manager entry so that loading of
                                default/other drivers is not affected.
        :param scope: Loads the driver in the given scope (if independent
                      instances of a driver are required)
        """

        alias = cls.ALIAS

        if specific_driver:
            driver_key = '{}:{}:{}'.format(alias, specific_driver, scope)
        else:
            driver_key = '{}:_from_cfg:{}'.format(alias, scope)

        try:
            manager = _DRIVER_MANAGERS[driver_key]
        except KeyError:
            driver_name = (specific_driver or
                           config.CONF.loadbalancer[alias + '_driver'])

            manager = stv_driver.DriverManager(
                namespace="%s.%s" % (_DRIVER_NAMESPACE_BASE, alias),
                name=driver_name,
                invoke_on_load=True)
            _DRIVER_MANAGERS[driver_key] = manager

        driver = manager.driver
        if not isinstance(driver, cls):
            raise TypeError(_("Invalid %(alias)r driver type: %(driver)s, "
                              "must be a subclass of %(type)s") % {
                            'alias': alias,
                            'driver': driver.__class__.__name__,
                            'type': cls})
        return driver

    def __str__(self):
        return self.__class__.__name__


class LBaaSDriver(DriverBase, metaclass=abc.ABCMeta):
    """Converges the load balancer of a Kubernetes LoadBalancer Service.

    Every method may be called again with the same arguments after a failure,
    the remote state left behind by the failed call is picked up and
    completed. Calls for the same Service must be serialized by the caller.
    """

    ALIAS = 'lbaas'

    @abc.abstractmethod
    def get_loadbalancer_name(self, cluster_name, service):
        """Returns the name of the load balancer backing the Service.

        :param cluster_name: name of the Kubernetes cluster
        :param service: dict containing Kubernetes Service object
        """
        raise NotImplementedError()

    @abc.abstractmethod
    def get_loadbalancer(self, cluster_name, service):
        """Reports the status of the load balancer without changing it.

        :param cluster_name: name of the Kubernetes cluster
        :param service: dict containing Kubernetes Service object
        :returns: tuple of the LoadBalancerStatus dict (or None) and a bool
                  telling whether the load balancer exists
        """
        raise NotImplementedError()

    @abc.abstractmethod
    def ensure_loadbalancer(self, cluster_name, service, nodes, cancel=None):
        """Creates or updates the whole load balancer tree of the Service.

        :param cluster_name: name of the Kubernetes cluster
        :param service: dict containing Kubernetes Service object, its
                        load-balancer-id annotation is set on success
        :param nodes: list of Kubernetes Node dicts receiving the traffic
        :param cancel: optional `threading.Event` aborting the waits
        :returns: LoadBalancerStatus dict
        """
        raise NotImplementedError()

    @abc.abstractmethod
    def update_loadbalancer(self, cluster_name, service, nodes, cancel=None):
        """Converges the pool members and firewall rules of the Service.

        Listeners are expected to exist already.

        :param cluster_name: name of the Kubernetes cluster
        :param service: dict containing Kubernetes Service object
        :param nodes: list of Kubernetes Node dicts receiving the traffic
        :param cancel: optional `threading.Event` aborting the waits
        """
        raise NotImplementedError()

    @abc.abstractmethod
    def ensure_loadbalancer_deleted(self, cluster_name, service, cancel=None):
        """Releases everything created for the Service.

        Should return without errors if the load balancer does not exist.

        :param cluster_name: name of the Kubernetes cluster
        :param service: dict containing Kubernetes Service object
        :param cancel: optional `threading.Event` aborting the waits
        """
        raise NotImplementedError()


class ServicePubIpDriver(DriverBase, metaclass=abc.ABCMeta):
    """Manages the externally reachable address of a load balancer."""

    ALIAS = 'service_public_ip'

    @abc.abstractmethod
    def acquire_service_pub_ip_info(self, cluster_name, service, svc_conf,
                                    loadbalancer):
        """Resolves the address the Service is reachable on

        :param cluster_name: name of the Kubernetes cluster
        :param service: dict containing Kubernetes Service object
        :param svc_conf: `ServiceConfig` of the reconciliation pass
        :param loadbalancer: openstacksdk LoadBalancer
        :returns: address string

        """
        raise NotImplementedError()

    @abc.abstractmethod
    def get_pub_ip(self, loadbalancer):
        """Returns the public address bound to the load balancer VIP

        :param loadbalancer: openstacksdk LoadBalancer
        :returns: address string or None

        """
        raise NotImplementedError()

    @abc.abstractmethod
    def release_pub_ip(self, service, loadbalancer):
        """Release (if needed) the public address of the load balancer

        Only addresses allocated by this driver are released.

        :param service: dict containing Kubernetes Service object
        :param loadbalancer: openstacksdk LoadBalancer

        """
        raise NotImplementedError()


class ServiceSecurityGroupsDriver(DriverBase, metaclass=abc.ABCMeta):
    """Manages security groups of Service load balancers and their nodes."""

    ALIAS = 'service_security_groups'

    @abc.abstractmethod
    def ensure_security_groups(self, cluster_name, service, svc_conf,
                               loadbalancer, nodes, capabilities):
        """Converges the security group rules of a load balancer.

        :param cluster_name: name of the Kubernetes cluster
        :param service: dict containing Kubernetes Service object
        :param svc_conf: `ServiceConfig` of the reconciliation pass
        :param loadbalancer: openstacksdk LoadBalancer
        :param nodes: list of Kubernetes Node dicts receiving the traffic
        :param capabilities: `OctaviaCapabilities`
        :return: ID of the load balancer security group
        """
        raise NotImplementedError()

    @abc.abstractmethod
    def release_security_groups(self, service):
        """Deletes the security group of the Service and its rules.

        Should return without errors if the group does not exist.

        :param service: dict containing Kubernetes Service object
        """
        raise NotImplementedError()
