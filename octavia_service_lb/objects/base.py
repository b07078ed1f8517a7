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


class ServiceLBObjectBase(obj_base.VersionedObject,
                          obj_base.ComparableVersionedObject):
    OBJ_PROJECT_NAMESPACE = 'octavia_service_lb'

    def __init__(self, context=None, **kwargs):
        super(ServiceLBObjectBase, self).__init__(context, **kwargs)
        self.obj_set_defaults()
        self.obj_reset_changes()
